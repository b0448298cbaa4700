'''
Exceptions raised before any optimization work starts.
'''


class ConfigurationError(ValueError):
    """
    The geometry, layout, penalty weights, schedule or settings are malformed.
    Fatal: nothing is retried.
    """


class InputError(ValueError):
    """
    The corpus is unreadable or yields no usable n-grams.
    """
