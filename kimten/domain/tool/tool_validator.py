from typing import Any, Callable, Dict, Optional
import jsonschema
from pydantic import BaseModel, ConfigDict

from kimten.domain.models import InputValidationError


class ToyDefinition(BaseModel):
    """Normalized tool definition"""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    execute: Callable[..., Any]
    input_schema: Any = None
    description: Optional[str] = None
    strict: Optional[bool] = None


# Parameter & definition validation
class ToyDefinitionValidator:
    @staticmethod
    def validate_toys(toys: Any) -> Dict[str, ToyDefinition]:
        if toys is None:
            return {}

        if not isinstance(toys, dict):
            raise InputValidationError(
                'Kimten config "toys" must be a dict of functions or tool definitions.'
            )

        return {
            name: ToyDefinitionValidator.validate_toy(name, entry)
            for name, entry in toys.items()
        }

    @staticmethod
    def validate_toy(name: Any, entry: Any) -> ToyDefinition:
        if not isinstance(name, str) or not name.strip():
            raise InputValidationError("Kimten tool names must be non-empty strings.")

        if callable(entry) and not isinstance(entry, dict):
            return ToyDefinition(name=name, execute=entry)

        if not isinstance(entry, dict):
            raise InputValidationError(
                f'Kimten tool "{name}" must be a function or a dict with execute(args).'
            )

        if not callable(entry.get("execute")):
            raise InputValidationError(f'Kimten tool "{name}" dict form must include execute(args).')

        description = entry.get("description")
        if description is not None and not isinstance(description, str):
            raise InputValidationError(f'Kimten tool "{name}" description must be a string when provided.')

        strict = entry.get("strict")
        if strict is not None and not isinstance(strict, bool):
            raise InputValidationError(f'Kimten tool "{name}" strict must be a boolean when provided.')

        input_schema = entry.get("input_schema")
        if input_schema is not None and not (
            isinstance(input_schema, dict)
            or (isinstance(input_schema, type) and issubclass(input_schema, BaseModel))
        ):
            raise InputValidationError(
                f'Kimten tool "{name}" input_schema must be a pydantic model or a JSON schema dict.'
            )

        if isinstance(input_schema, dict):
            try:
                jsonschema.validators.validator_for(input_schema).check_schema(input_schema)
            except jsonschema.SchemaError as e:
                raise InputValidationError(
                    f'Kimten tool "{name}" input_schema is not a valid JSON schema: {e.message}'
                ) from e

        return ToyDefinition(
            name=name,
            execute=entry["execute"],
            input_schema=input_schema,
            description=description,
            strict=strict,
        )

    @staticmethod
    def validate_arguments(definition: ToyDefinition, args: Dict[str, Any]) -> Optional[str]:
        """Check arguments against a JSON schema input; returns the failure message, if any"""

        if not isinstance(definition.input_schema, dict):
            return None

        try:
            jsonschema.validate(args, definition.input_schema)
        except jsonschema.ValidationError as e:
            return f"Schema validation failed: {e.message}"
        return None
