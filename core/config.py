from typing import Optional

from pydantic.v1 import BaseSettings


class Settings(BaseSettings):

    DATABASE_URL: str
    JWT_SECRET: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str
    AWS_S3_BUCKET_NAME: str
    AWS_S3_ENDPOINT_URL: str
    AWS_S3_REGION: str
    AWS_S3_SECURE: bool = False

    PLACES_API_KEY: str = ""
    PLACES_API_URL: str = "https://maps.googleapis.com/maps/api/place"
    REVERSE_GEOCODE_URL: str = "https://api.bigdatacloud.net/data/reverse-geocode-client"
    FORWARD_GEOCODE_URL: str = "https://api.bigdatacloud.net/data/forward-geocode-client"
    GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"
    GOOGLE_CLIENT_ID: Optional[str] = None
    PROXY: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 10

    DISCOVERY_FETCH_LIMIT: int = 50
    DEFAULT_RADIUS_MILES: float = 25
    CHAT_HISTORY_LIMIT: int = 200

    DEBUG: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def s3_base_url(self) -> str:
        return self.AWS_S3_ENDPOINT_URL.rstrip("/") + "/" + self.AWS_S3_BUCKET_NAME

    @property
    def proxies(self) -> Optional[dict[str, str]]:
        if not self.PROXY:
            return None
        return {"http": self.PROXY, "https": self.PROXY}


# Global settings object, imported everywhere
settings = Settings()
