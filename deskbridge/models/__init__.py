from deskbridge.models.integration_settings import SINGLETON_ROW_ID, IntegrationSettings

__all__ = ["IntegrationSettings", "SINGLETON_ROW_ID"]
