from pydantic import BaseModel, Field, ValidationError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SettingsSchema(BaseModel):
    weight_unit: str = "kg"
    load_increment: float = Field(2.5, ge=0)
    rep_increment: int = Field(1, ge=0)
    clock_interval: float = Field(1.0, gt=0)
    corrections_shown: int = Field(3, ge=0)
    api_base_url: str = "http://localhost:8000"
    api_token: str = ""
    request_timeout: float = Field(10.0, gt=0)
    log_level: str = "INFO"


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
    level = data.get("log_level")
    if level is not None and str(level).upper() not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
