# config package — authoritative source for all completion client configuration.
#
# Sub-modules:
#   api_config.py     — endpoint, authentication, routing codes, offline mode
#   client_params.py  — retry/timeout defaults, content limits, cache and log sizes,
#                       record field names and request instructions
