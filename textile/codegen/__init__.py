from .macros import GENERATED_NAME, CodegenOptions, generate_textile_source

__all__ = ["GENERATED_NAME", "CodegenOptions", "generate_textile_source"]
