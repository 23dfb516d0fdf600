# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
from typing import Optional, List
from dotenv import load_dotenv

TRUE_VALUES = {'1', 'true', 'yes', 'on'}


class Config:
    """Configuration management"""

    def __init__(self):
        load_dotenv()

    @property
    def ad_server(self) -> Optional[str]:
        return os.getenv("AD_SERVER")

    @property
    def ad_username(self) -> Optional[str]:
        return os.getenv("AD_USERNAME")

    @property
    def ad_password(self) -> Optional[str]:
        return os.getenv("AD_PASSWORD")

    @property
    def base_dn(self) -> Optional[str]:
        """Optional; discovered from the server's RootDSE when unset"""
        return os.getenv("BASE_DN")

    @property
    def use_ssl(self) -> bool:
        return os.getenv("AD_USE_SSL", "false").strip().lower() in TRUE_VALUES

    @property
    def query_timeout(self) -> int:
        return self._int_setting("AD_QUERY_TIMEOUT", 30)

    @property
    def page_size(self) -> int:
        return self._int_setting("AD_PAGE_SIZE", 500)

    @property
    def enrich_workers(self) -> int:
        return self._int_setting("ENRICH_WORKERS", 8)

    def _int_setting(self, name: str, default: int) -> int:
        raw = os.getenv(name)
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {raw!r}")
        if value < 1:
            raise ValueError(f"{name} must be at least 1, got {value}")
        return value

    def validate_ad_config(self) -> bool:
        """Validate that the AD server is set and credentials are all-or-nothing"""
        return not self.get_missing_ad_vars()

    def get_missing_ad_vars(self) -> List[str]:
        """Get list of missing AD configuration variables"""
        missing = [] if self.ad_server else ["AD_SERVER"]
        # Without a username the ambient Kerberos ticket is used
        if self.ad_username and not self.ad_password:
            missing.append("AD_PASSWORD")
        if self.ad_password and not self.ad_username:
            missing.append("AD_USERNAME")
        return missing
