"""Issue tracker integrations."""

from .jira import JiraClient, map_priority, text_to_adf

__all__ = ["JiraClient", "map_priority", "text_to_adf"]
