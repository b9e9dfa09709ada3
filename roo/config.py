# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Configuration management for Roo.

This module handles application configuration from environment variables.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.
    
    Assumptions:
    - Environment variables override defaults
    - API version is configurable
    - The admin application ids are normally discovered from the
      configuration table written on first run; setting them here pins them
    """
    
    # Database
    database_url: str = "sqlite:///./roo.db"
    
    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_version: str = "v1"
    
    # Admin application
    admin_application_id: Optional[str] = None
    admin_client_id: Optional[str] = None
    bootstrap_admin_password: str = "admin"
    
    # Listing
    default_page_limit: int = 10
    max_page_limit: int = 1000
    
    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False
    )


settings = Settings()
