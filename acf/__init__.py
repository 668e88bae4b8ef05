"""ACF placement and network aggregation core."""
