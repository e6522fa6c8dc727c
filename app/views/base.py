"""
Base setup for views, containing shared functionality and imports.
"""
from fastapi import APIRouter
from fastapi.templating import Jinja2Templates
from pathlib import Path
import logging

from app.config import settings
from app.search.formatting import format_price

# Set up Jinja2 templates
templates_dir = Path(__file__).parent.parent.parent / "frontend" / "templates"
templates = Jinja2Templates(directory=str(templates_dir))
templates.env.filters["price"] = format_price

# Customize Jinja2Templates to include app_version in all templates
original_template_response = templates.TemplateResponse

def template_response_with_version(*args, **kwargs):
    """Wrapper for TemplateResponse to include version in all templates"""
    # Called as TemplateResponse(request, name, context)
    if len(args) >= 3 and isinstance(args[2], dict):
        args[2].setdefault("version", settings.version)
    elif "context" in kwargs and isinstance(kwargs["context"], dict):
        kwargs["context"].setdefault("version", settings.version)
    return original_template_response(*args, **kwargs)

templates.TemplateResponse = template_response_with_version

# Set up logging
logger = logging.getLogger(__name__)
