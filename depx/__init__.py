"""depx - intelligent dependency analyzer for JavaScript/TypeScript and Rust projects."""

__version__ = "0.3.0"
