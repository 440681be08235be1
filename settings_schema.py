from pydantic import BaseModel, Field, ValidationError

class SettingsSchema(BaseModel):
    default_rest_seconds: int = Field(60, gt=0)
    weight_unit: str = "kg"
    history_limit: int = Field(10, gt=0)
    timezone: str = "UTC"
    generation_model: str = "google/gemini-2.0-flash-001"
    generation_temperature: float = Field(0.9, ge=0.0, le=2.0)
    generation_base_url: str = "https://openrouter.ai/api/v1"
    warn_on_dropped_exercises: bool = True
    openrouter_api_key: str | bool | None = None

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
