"""Base model for catalog service wire payloads (snake_case on the wire)."""

from pydantic import BaseModel, ConfigDict


class WireModel(BaseModel):
    """Base class for request / response bodies exchanged with the service.

    Unknown keys in server responses are ignored so that new server-side
    fields never break decoding.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    def to_wire(self) -> dict:
        """Serialize for a JSON request body, omitting unset optionals."""
        return self.model_dump(mode="json", exclude_none=True)
