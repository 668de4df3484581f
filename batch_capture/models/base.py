"""JsonModel base classes shared by domain and wire models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class JsonModel(BaseModel):
    """Base model for JSON output with camelCase/snake_case conversion.

    - JSON output uses camelCase (event logs, CLI summaries)
    - Internal Python and batch files use snake_case
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def model_dump(self, **kwargs) -> dict:
        """Override model_dump - snake_case for internal use."""
        kwargs.setdefault("mode", "json")
        return super().model_dump(**kwargs)

    def model_dump_json(self, **kwargs) -> str:
        """Override to ensure camelCase in JSON output."""
        kwargs.setdefault("by_alias", True)
        return super().model_dump_json(**kwargs)

    def to_json(self, by_alias: bool = True, pretty: bool = False) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(
            indent=2 if pretty else None, exclude_none=True, by_alias=by_alias
        )

    def to_dict(
        self,
        by_alias: bool | None = None,
        mode: Literal["json", "python"] = "python",
    ) -> dict[str, Any]:
        """Convert to dictionary with flexible options."""
        return self.model_dump(
            exclude_none=True,
            by_alias=by_alias or (mode == "json"),
            mode=mode,
        )


class FrozenJsonModel(JsonModel):
    """Immutable, hashable JsonModel.

    Values shared between concurrent tasks are replaced wholesale rather than
    mutated in place; use ``model_copy(update=...)`` to derive a new value.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
        # Versions such as 10 or 9.1 arrive unquoted from YAML and JSON.
        coerce_numbers_to_str=True,
    )
