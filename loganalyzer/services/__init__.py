"""Services layer - parsing, geolocation, aggregation and the pipeline."""
from .logparser import LogParser, create_parser
from .handlers import Handler, create_handler
from .pipeline import Pipeline

__all__ = ["LogParser", "create_parser", "Handler", "create_handler", "Pipeline"]
