"""Per-transfer options accepted by read and write streams."""

from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TransferOptions(BaseModel):
    """Options for one read or write stream.

    Unrecognized keys are ignored. ``gunzip`` only affects reads.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    metadata: dict[str, str] | None = Field(
        default=None, validation_alias=AliasChoices("metadata", "Metadata")
    )
    content_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("content_type", "contentType", "ContentType"),
    )
    gunzip: bool = True

    @classmethod
    def coerce(
        cls, options: "TransferOptions | Mapping[str, Any] | None" = None, **kwargs: Any
    ) -> "TransferOptions":
        """Build options from an instance, a mapping, keyword arguments, or nothing."""
        if isinstance(options, TransferOptions):
            if not kwargs:
                return options
            data: dict[str, Any] = options.model_dump(exclude_unset=True)
        else:
            data = dict(options or {})
        data.update(kwargs)
        return cls.model_validate(data)
