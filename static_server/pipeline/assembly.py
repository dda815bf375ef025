"""Construction of the request pipeline from the configuration."""

from static_server.bootstrap.config import Configuration
from static_server.handlers.file_handler import StaticFileStage
from static_server.pipeline.access_log import AccessLogStage
from static_server.pipeline.base import Pipeline, Stage
from static_server.pipeline.conditional_get import ConditionalGetStage
from static_server.pipeline.content_type import ContentTypeStage
from static_server.pipeline.directory_redirect import DirectoryRedirectStage
from static_server.pipeline.etag import ETagStage
from static_server.pipeline.header_injection import HeaderInjectionStage


def build_pipeline(configuration: Configuration) -> Pipeline:
    """Return the stages in their fixed order.

    The header injection stage is only present when headers are configured.
    """
    stages: list[Stage] = [
        AccessLogStage(),
        DirectoryRedirectStage(configuration.root_folder),
        ConditionalGetStage(),
        ETagStage(),
    ]
    if configuration.headers:
        stages.append(HeaderInjectionStage(configuration.headers))
    stages.extend(
        [
            ContentTypeStage(configuration.extension_media_types),
            StaticFileStage(configuration.root_folder),
        ]
    )
    return Pipeline(stages)
