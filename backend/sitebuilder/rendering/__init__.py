from .renderer import COMPONENT_TYPES, Renderer, build_environment
