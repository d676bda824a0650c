### VEHICLE FLEET PARAMETERS ###


# Default survival schedule (truncated Weibull)
service_life = 20  # years, zero survival from this age on
weibull_shape = 3.0
weibull_scale = 14.0  # years
