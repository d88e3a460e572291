"""
Layout templates: loading, detection and label lookups.
"""
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Sequence
import logging

from .anchors import find_anchors_in_lines

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "belfius_fr"


def fold_quotes(value: str) -> str:
    """Typographic apostrophes are printed interchangeably with ASCII ones."""
    return value.replace('’', "'").replace('‘', "'")


class StatementLayout:
    """Label and marker knowledge for one statement layout."""

    def __init__(self, template: Dict[str, Any]):
        self.template_id = template.get('template_id')
        self.bank = template.get('bank')

        anchor = template.get('account_anchor', {})
        self.anchor_min_length = anchor.get('min_length', 14)

        header = template.get('header', {})
        self.bic_prefix = header.get('bic_prefix', 'BIC ')
        self.title_marker = header.get('title_marker', 'Extrait N°')
        self.closing_balance_prefix = header.get('closing_balance_prefix', 'Solde actuel au ')
        self.opening_balance_prefix = header.get('opening_balance_prefix', 'Solde précédent au ')

        operations = template.get('operations', {})
        self.operations_header = operations.get('header', "N° Type d'opération")
        self.header_fuzzy_threshold = operations.get('fuzzy_threshold', 85)
        skip = operations.get('skip_after_header', {})
        self.header_skip_exact = set(skip.get('exact', []))
        self.header_skip_prefixes = tuple(skip.get('prefixes', []))
        self.continuation_prefixes = tuple(operations.get('continuation_prefixes', ['...']))
        self.footer_prefixes = tuple(operations.get('footer_prefixes', ['Solde ', 'Les dépôts ', '-- ']))

        self.detail_labels: Dict[str, List[str]] = {
            kind: [fold_quotes(label) for label in labels]
            for kind, labels in template.get('details', {}).items()
        }

    def is_footer(self, line: str) -> bool:
        return line.startswith(self.footer_prefixes)

    def is_continuation(self, line: str) -> bool:
        return line.startswith(self.continuation_prefixes)

    def is_header_continuation(self, line: str) -> bool:
        return line in self.header_skip_exact or line.startswith(self.header_skip_prefixes)

    def detail_label(self, line: str) -> Optional[tuple]:
        """
        Find the labelled detail field a line introduces.

        Returns:
            (kind, label) tuple if the line starts with a known label, None otherwise
        """
        folded = fold_quotes(line)
        for kind, labels in self.detail_labels.items():
            for label in labels:
                if folded.startswith(label):
                    return kind, label
        return None


class TemplateDetector:
    """Detects which template matches a statement's lines."""

    def __init__(self, templates_dir: Path = None):
        self.templates_dir = templates_dir or Path(__file__).parent.parent / "templates"
        self.templates = {}
        self._load_templates()

    def _load_templates(self):
        """Load all available templates."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            return

        for yaml_file in sorted(self.templates_dir.glob("*.yaml")):
            try:
                with open(yaml_file, 'r', encoding='utf-8') as f:
                    template_data = yaml.safe_load(f)
                template_id = template_data.get('template_id')
                if template_id:
                    self.templates[template_id] = template_data
                    logger.debug(f"Loaded template: {template_id}")
            except (OSError, yaml.YAMLError, AttributeError) as e:
                logger.error(f"Error loading template {yaml_file}: {e}")

    def detect_template(self, lines: Sequence[str]) -> Optional[str]:
        """
        Detect which template matches the statement lines.

        Args:
            lines: Normalized statement lines

        Returns:
            Template ID if found, None otherwise
        """
        for template_id, template_config in self.templates.items():
            if self._matches_template(lines, template_config):
                logger.info(f"Statement matches template: {template_id}")
                return template_id

        logger.warning("No matching template found")
        return None

    def _matches_template(self, lines: Sequence[str], template_config: Dict[str, Any]) -> bool:
        page_match = template_config.get('page_match', {})
        must_contain = page_match.get('must_contain', [])
        fuzzy_threshold = page_match.get('fuzzy_threshold', 85)

        if not must_contain:
            logger.warning("Template has no 'must_contain' requirements")
            return False

        found_anchors = find_anchors_in_lines(lines, must_contain, fuzzy_threshold)
        if len(found_anchors) == len(must_contain):
            return True

        logger.debug(f"Template mismatch: found {len(found_anchors)}/{len(must_contain)} required anchors")
        return False

    def get_template(self, template_id: str) -> Optional[Dict[str, Any]]:
        """Get template configuration by ID."""
        return self.templates.get(template_id)

    def list_templates(self) -> List[str]:
        """List all available template IDs."""
        return list(self.templates.keys())

    def get_layout(self, template_id: str) -> StatementLayout:
        template = self.get_template(template_id)
        if not template:
            raise ValueError(f"Template not found: {template_id}")
        return StatementLayout(template)


def detect_template(lines: Sequence[str]) -> Optional[str]:
    """
    Convenience function to detect the template for statement lines.

    Args:
        lines: Normalized statement lines

    Returns:
        Template ID if found, None otherwise
    """
    detector = TemplateDetector()
    return detector.detect_template(lines)


def load_layout(template_id: str = DEFAULT_TEMPLATE_ID) -> StatementLayout:
    """Load the layout for a template ID; raises ValueError if unknown."""
    return TemplateDetector().get_layout(template_id)
