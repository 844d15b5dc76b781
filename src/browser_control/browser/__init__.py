"""Browser session control plane: engine binding, registry, resolver and dispatcher."""

from browser_control.browser.actions import ACTION_TYPES, BrowserAction, parse_action
from browser_control.browser.cloud_client import CloudBrowserClient
from browser_control.browser.control_plane import ControlPlane, build_control_plane
from browser_control.browser.dispatcher import ActionDispatcher
from browser_control.browser.engine import PlaywrightEngine
from browser_control.browser.errors import (
    BrowserControlError,
    CloudHostError,
    ElementNotFound,
    ElementNotInteractable,
    EngineUnavailable,
    LaunchError,
    NoActiveSession,
    SessionClosed,
    ValidationError,
)
from browser_control.browser.extractor import PageStateExtractor
from browser_control.browser.readiness import ReadinessChecker
from browser_control.browser.registry import SessionEntry, SessionRegistry
from browser_control.browser.resolver import SessionResolver
from browser_control.browser.settings import ControlPlaneSettings

__all__ = [
    "ACTION_TYPES",
    "ActionDispatcher",
    "BrowserAction",
    "BrowserControlError",
    "CloudBrowserClient",
    "CloudHostError",
    "ControlPlane",
    "ControlPlaneSettings",
    "ElementNotFound",
    "ElementNotInteractable",
    "EngineUnavailable",
    "LaunchError",
    "NoActiveSession",
    "PageStateExtractor",
    "PlaywrightEngine",
    "ReadinessChecker",
    "SessionClosed",
    "SessionEntry",
    "SessionRegistry",
    "SessionResolver",
    "ValidationError",
    "parse_action",
]
