"""Downstream Microsoft Graph collaborators."""

from .client import GraphClient, GraphUser, MailMessage

__all__ = ["GraphClient", "GraphUser", "MailMessage"]
