class SignedFetchError(Exception):
    pass


class ConfigurationError(SignedFetchError):
    pass


class PrivateKeyError(ConfigurationError):
    pass


class SigningError(SignedFetchError):
    pass


class GadgetException(SignedFetchError):
    def __init__(self, code, message):
        super().__init__(code, message)
        self._code = code
        self.message = message

    @property
    def code(self):
        return self._code


class FetchServerUnreachableError(SignedFetchError):
    pass
