"""
Module Registry

Static table describing every translatable content module: where its records
live, which records count as live, and which fields get translated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ModuleIdentifier(str, Enum):
    SERVICE_PAGES = "service_pages"
    JOBS = "jobs"
    TEAM_MEMBERS = "team_members"
    TESTIMONIALS = "testimonials"
    INDUSTRIES = "industries"
    TECHNOLOGY_STACK = "technology_stack"
    FAQS = "faqs"
    COMPANY_INFO = "company_info"


class UnknownModuleError(ValueError):
    """Raised when a module identifier is not in the registry."""


@dataclass(frozen=True)
class ActiveFilter:
    """Field/value predicate selecting the live records of a module."""
    field: str
    value: Any


@dataclass(frozen=True)
class ArrayField:
    """An array of sub-objects; empty sub_fields means an array of plain strings."""
    name: str
    sub_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ModuleConfig:
    identifier: ModuleIdentifier
    storage_location: str
    display_name: str
    title_field: str
    text_fields: Tuple[str, ...]
    array_fields: Tuple[ArrayField, ...] = ()
    active_filter: Optional[ActiveFilter] = None

    @property
    def array_field_names(self) -> Tuple[str, ...]:
        return tuple(field.name for field in self.array_fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier.value,
            "storage_location": self.storage_location,
            "display_name": self.display_name,
            "title_field": self.title_field,
            "text_fields": list(self.text_fields),
            "array_fields": [
                {"name": field.name, "sub_fields": list(field.sub_fields)}
                for field in self.array_fields
            ],
            "active_filter": (
                {"field": self.active_filter.field, "value": self.active_filter.value}
                if self.active_filter else None
            ),
        }


_TITLE_DESCRIPTION = ("title", "description")

MODULE_CONFIGS: Dict[ModuleIdentifier, ModuleConfig] = {
    ModuleIdentifier.SERVICE_PAGES: ModuleConfig(
        identifier=ModuleIdentifier.SERVICE_PAGES,
        storage_location="service_pages",
        display_name="Service Pages",
        title_field="title",
        active_filter=ActiveFilter("status", "published"),
        text_fields=(
            "title", "hero_headline", "hero_subheadline", "hero_cta_text",
            "introduction_title", "introduction_content", "differentiator_title",
            "differentiator_content", "consultation_title", "consultation_description",
            "final_cta_title", "final_cta_description", "final_cta_button_text",
            "meta_description",
        ),
        array_fields=(
            ArrayField("core_offerings", _TITLE_DESCRIPTION),
            ArrayField("benefits", _TITLE_DESCRIPTION),
            ArrayField("process_steps", _TITLE_DESCRIPTION),
            ArrayField("case_studies", ("title", "description", "result")),
            ArrayField("tech_stack", ("name", "description")),
            ArrayField("why_choose_us", _TITLE_DESCRIPTION),
            ArrayField("testimonials", ("quote", "author_role")),
        ),
    ),
    ModuleIdentifier.JOBS: ModuleConfig(
        identifier=ModuleIdentifier.JOBS,
        storage_location="jobs",
        display_name="Jobs",
        title_field="title",
        active_filter=ActiveFilter("status", "active"),
        text_fields=(
            "title", "description", "requirements", "location",
            "salary_range", "specialization",
        ),
    ),
    ModuleIdentifier.TEAM_MEMBERS: ModuleConfig(
        identifier=ModuleIdentifier.TEAM_MEMBERS,
        storage_location="team_members",
        display_name="Team Members",
        title_field="name",
        active_filter=ActiveFilter("is_active", True),
        text_fields=("name", "role", "bio"),
    ),
    ModuleIdentifier.TESTIMONIALS: ModuleConfig(
        identifier=ModuleIdentifier.TESTIMONIALS,
        storage_location="testimonials",
        display_name="Testimonials",
        title_field="author_name",
        active_filter=ActiveFilter("is_active", True),
        text_fields=("quote", "author_role", "company_name"),
    ),
    ModuleIdentifier.INDUSTRIES: ModuleConfig(
        identifier=ModuleIdentifier.INDUSTRIES,
        storage_location="industries",
        display_name="Industries",
        title_field="name",
        active_filter=ActiveFilter("is_active", True),
        text_fields=("name", "description"),
        array_fields=(
            ArrayField("features"),
            ArrayField("content_sections", ("title", "content")),
        ),
    ),
    ModuleIdentifier.TECHNOLOGY_STACK: ModuleConfig(
        identifier=ModuleIdentifier.TECHNOLOGY_STACK,
        storage_location="technology_stack",
        display_name="Technologies",
        title_field="name",
        active_filter=ActiveFilter("is_active", True),
        text_fields=("name", "description"),
    ),
    ModuleIdentifier.FAQS: ModuleConfig(
        identifier=ModuleIdentifier.FAQS,
        storage_location="faqs",
        display_name="FAQs",
        title_field="question",
        active_filter=ActiveFilter("is_active", True),
        text_fields=("question", "answer"),
    ),
    ModuleIdentifier.COMPANY_INFO: ModuleConfig(
        identifier=ModuleIdentifier.COMPANY_INFO,
        storage_location="company_info",
        display_name="Company Info",
        title_field="company_name",
        text_fields=(
            "company_name", "netherlands_address", "india_address", "copyright_text",
        ),
    ),
}


def get_module_config(module_id: Union[str, ModuleIdentifier]) -> ModuleConfig:
    """
    Resolve a module identifier to its configuration.

    Raises:
        UnknownModuleError: If the identifier is not registered.
    """
    try:
        identifier = ModuleIdentifier(module_id)
    except ValueError:
        raise UnknownModuleError(f"Unknown module: {module_id}") from None
    return MODULE_CONFIGS[identifier]


def list_module_configs() -> List[ModuleConfig]:
    """All module configurations in declaration order."""
    return list(MODULE_CONFIGS.values())


def translatable_fields(config: ModuleConfig) -> Tuple[str, ...]:
    """Names of every field the module translates, scalars first."""
    return config.text_fields + config.array_field_names
