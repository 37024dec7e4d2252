"""
Callback parameter validation.

A provider-reported error always wins over missing parameters, so the user
sees "access denied" rather than "missing code".
"""

from typing import Any, Mapping, NoReturn, Optional, Union

from .exceptions import (
    OAuthCallbackError,
    MissingAuthorizationCodeError,
    MissingStateError,
)
from .models import CallbackParams


def handle_oauth_error(
    error: str,
    error_description: Optional[str] = None,
    error_uri: Optional[str] = None,
) -> NoReturn:
    """Raise the AuthorizationError for a provider-reported error."""
    raise OAuthCallbackError(error, error_description, error_uri)


def validate_callback_params(
    params: Union[CallbackParams, Mapping[str, Any]],
) -> tuple[str, str]:
    """
    Check callback parameters and return ``(code, state)``.

    Raises:
        OAuthCallbackError: The provider returned an error
        MissingAuthorizationCodeError: No ``code``
        MissingStateError: No ``state``
    """
    if not isinstance(params, CallbackParams):
        params = CallbackParams.model_validate(dict(params))

    if params.error:
        handle_oauth_error(params.error, params.error_description, params.error_uri)

    if not params.code:
        raise MissingAuthorizationCodeError()

    if not params.state:
        raise MissingStateError()

    return params.code, params.state
