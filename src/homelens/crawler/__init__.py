"""Listing page fetching."""

from .http_client import FetchedPage, ListingFetcher, RawResponse
from .user_agents import UserAgentRotator

__all__ = ["FetchedPage", "ListingFetcher", "RawResponse", "UserAgentRotator"]
