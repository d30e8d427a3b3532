"""FastAPI integration: validate a JSON body before the endpoint runs."""

import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, Request

from request_validator.data.files import LocalFileCleanup
from request_validator.models.validation import ValidationRequest
from request_validator.utils.error_handling import RequestValidatorError
from request_validator.validation.engine import RuleEngine
from request_validator.validation.parser import RuleSpec

logger = logging.getLogger(__name__)


class ValidateBody:
    """
    Dependency that validates the JSON body against a rules mapping.

    Upload middleware may place ``{field: [file descriptors]}`` on
    ``request.state.uploaded_files`` and per-request validators on
    ``request.state.custom_validators``.

    Example:
        @app.post("/users")
        async def create_user(body: dict = Depends(ValidateBody({"email": "required|email"}))):
            ...
    """

    def __init__(self, rules: Mapping[str, RuleSpec], engine: Optional[RuleEngine] = None):
        self.rules = rules
        self.engine = engine or RuleEngine(file_cleanup=LocalFileCleanup())

    async def __call__(self, request: Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except ValueError:
            # empty or non-JSON body: validate as if no fields were sent
            body = {}
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")

        validation_request = ValidationRequest(
            body=body,
            files=getattr(request.state, "uploaded_files", None) or {},
            custom_validators=getattr(request.state, "custom_validators", None) or {},
        )
        try:
            result = await self.engine.validate(validation_request, self.rules)
        except RequestValidatorError:
            raise
        except Exception as e:
            logger.error(f"Validation aborted by store failure: {e}", extra={"path": request.url.path})
            raise HTTPException(
                status_code=503,
                detail="Validation temporarily unavailable",
            ) from e

        if result.failed:
            raise HTTPException(status_code=422, detail=result.model_dump())
        return body
