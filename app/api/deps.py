from functools import lru_cache

from app.config import get_settings
from app.services.forms.discovery import FormDiscoverer
from app.services.forms.submission import FormSubmitter
from app.services.line_messaging import LineMessagingClient
from app.services.linkage import LinkageOrchestrator, SessionRegistry
from app.services.login import default_login_factory
from app.services.preview import PreviewMetadataResolver, UserAgentClassifier
from app.services.users import get_repository


@lru_cache
def get_discoverer() -> FormDiscoverer:
    return FormDiscoverer(get_settings())


@lru_cache
def get_messaging_client() -> LineMessagingClient:
    return LineMessagingClient(get_settings())


@lru_cache
def get_submitter() -> FormSubmitter:
    return FormSubmitter(get_settings())


@lru_cache
def get_classifier() -> UserAgentClassifier:
    return UserAgentClassifier.from_settings(get_settings())


@lru_cache
def get_metadata_resolver() -> PreviewMetadataResolver:
    return PreviewMetadataResolver(get_discoverer(), get_settings())


@lru_cache
def get_session_registry() -> SessionRegistry:
    return SessionRegistry(default_login_factory(get_settings()))


@lru_cache
def get_orchestrator() -> LinkageOrchestrator:
    return LinkageOrchestrator(
        discoverer=get_discoverer(),
        notifier=get_messaging_client(),
        repository=get_repository(),
        settings=get_settings(),
    )
