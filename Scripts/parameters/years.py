### SIMULATION YEARS ###
from typing import List


# Years for which shares, prices and intensities are evaluated
years: List[int] = ([1990]
                    + list(range(2005, 2061, 5))
                    + list(range(2070, 2111, 10))
                    + [2130, 2150])

# Historical years used for calibration of preferences
reference_years: List[int] = [2010]
