"""
Configuration management for SST.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized way to manage store, media and content-type settings
without changing code.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List
import logging


class ConfigManager:
    """
    Manages configuration loading and access for SST.
    """
    
    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.
        
        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()
    
    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
                
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}
                
            logging.info(f"Configuration loaded from {self.config_path}")
            
        except Exception as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()
            
    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "database": {
                "filename": "sst.db"
            },
            "site": {
                "base_url": "http://localhost"
            },
            "media": {
                "upload_dir": "uploads",
                "timeout": 30.0,
                "user_agent": "sst-ingest/0.1.0",
                "image_sizes": {
                    "thumbnail": [150, 150],
                    "medium": [300, 300],
                    "large": [1024, 1024]
                }
            },
            "content": {
                "post_types": ["post", "page", "attachment", "sst-promise"],
                "taxonomies": ["category", "post_tag"],
                "default_status": "draft"
            },
            "references": {
                "max_term_depth": 10
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
            "paths": {
                "log_file": "sst.log"
            }
        }
    
    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.
        
        Args:
            key_path: Dot-separated path to the configuration value (e.g., "site.base_url")
            default: Default value if key is not found
            
        Returns:
            The configuration value
            
        Examples:
            config.get("media.timeout")  # Returns 30.0
            config.get("media.image_sizes.medium")  # Returns [300, 300]
        """
        keys = key_path.split('.')
        value = self._config
        
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
                
        return value
    
    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.
        
        Args:
            section: Name of the configuration section
            
        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})
    
    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()
    
    # Convenience properties for commonly used values
    
    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "sst.db")
    
    @property
    def base_url(self) -> str:
        """Get the site base URL, without a trailing slash."""
        return str(self.get("site.base_url", "http://localhost")).rstrip('/')
    
    @property
    def uploads_url(self) -> str:
        """Get the base URL under which uploaded files are served."""
        return str(self.get("site.uploads_url", f"{self.base_url}/uploads")).rstrip('/')
    
    @property
    def upload_dir(self) -> str:
        """Get the directory downloaded media is written to."""
        return self.get("media.upload_dir", "uploads")
    
    @property
    def media_timeout(self) -> float:
        """Get media download timeout."""
        return self.get("media.timeout", 30.0)
    
    @property
    def media_user_agent(self) -> str:
        """Get the User-Agent header sent with media downloads."""
        return self.get("media.user_agent", "sst-ingest/0.1.0")
    
    @property
    def image_sizes(self) -> Dict[str, List[int]]:
        """Get named image size to [width, height] mapping."""
        return self.get("media.image_sizes", {
            "thumbnail": [150, 150],
            "medium": [300, 300],
            "large": [1024, 1024]
        })
    
    @property
    def post_types(self) -> List[str]:
        """Get registered post types."""
        return self.get("content.post_types", ["post", "page", "attachment", "sst-promise"])
    
    @property
    def taxonomies(self) -> List[str]:
        """Get registered taxonomies."""
        return self.get("content.taxonomies", ["category", "post_tag"])
    
    @property
    def default_status(self) -> str:
        """Get the status given to newly created referenced posts."""
        return self.get("content.default_status", "draft")
    
    @property
    def max_term_depth(self) -> int:
        """Get the nesting bound for inline term parents."""
        return self.get("references.max_term_depth", 10)
    
    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "sst.log")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.
    
    Returns:
        The global ConfigManager instance
    """
    return config
