from oauth2 import cache
from oauth2 import claims
from oauth2 import cleanup
from oauth2 import config
from oauth2 import exceptions
from oauth2 import models
from oauth2 import repository
from oauth2 import schemas
from oauth2 import tokens
from oauth2 import utils

from oauth2.cache import (ClientCache,)
from oauth2.cleanup import (RefreshTokenCleanup,)
from oauth2.config import (OAuth2Config, parse_duration,)
from oauth2.exceptions import (BadRequestError, ConflictError, ForbiddenError,
                               NotFoundError, OAuth2Error, UnauthorizedError,)
from oauth2.tokens import (TokenIssuer,)

__all__ = ['BadRequestError', 'ClientCache', 'ConflictError', 'ForbiddenError',
           'NotFoundError', 'OAuth2Config', 'OAuth2Error',
           'RefreshTokenCleanup', 'TokenIssuer', 'UnauthorizedError', 'cache',
           'claims', 'cleanup', 'config', 'exceptions', 'models',
           'parse_duration', 'repository', 'schemas', 'tokens', 'utils']
