"""Smart folders: rule-defined collections evaluated on every read."""

import json
import logging
from typing import Any, Callable, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .errors import InvalidFilterRuleError
from .metadata import MetadataStore
from .models import (
    AllRule,
    ContentTypeRule,
    DateRangeRule,
    FavoritesRule,
    FilterRule,
    RecentRule,
    Screenshot,
    SmartFolder,
    TagRule,
    now_ms,
)

logger = logging.getLogger(__name__)

DAY_MS = 86_400 * 1000

_rule_adapter = TypeAdapter(FilterRule)


def parse_filter_rule(raw: Union[str, dict, Any]) -> FilterRule:
    """Decode a persisted rule blob into a typed rule.

    Raises:
        InvalidFilterRuleError: For malformed JSON, unknown rule types or bad payloads
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidFilterRuleError(f"Filter rule is not valid JSON: {e}") from e
    try:
        return _rule_adapter.validate_python(raw)
    except ValidationError as e:
        kind = raw.get("type") if isinstance(raw, dict) else type(raw).__name__
        raise InvalidFilterRuleError(f"Unsupported filter rule {kind!r}: {e}") from e


class SmartFolderEvaluator:
    """Evaluates filter rules against the metadata store.

    Read-only: smart folders have no stored membership, only a rule.
    Results are newest first.
    """

    def __init__(
        self,
        metadata: MetadataStore,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.metadata = metadata
        self._clock = clock or now_ms

    def evaluate(self, rule: FilterRule) -> list[Screenshot]:
        if isinstance(rule, AllRule):
            return self.metadata.all_screenshots()
        if isinstance(rule, RecentRule):
            since = self._clock() - int(rule.days * DAY_MS)
            return self.metadata.screenshots_created_between(since)
        if isinstance(rule, FavoritesRule):
            return self.metadata.favorite_screenshots()
        if isinstance(rule, TagRule):
            return self.metadata.screenshots_with_tag(rule.tag_id)
        if isinstance(rule, DateRangeRule):
            end = rule.end if rule.end is not None else self._clock()
            return self.metadata.screenshots_created_between(rule.start, end)
        if isinstance(rule, ContentTypeRule):
            return self.metadata.screenshots_with_keyword_blob(rule.content_type)

        logger.warning("Unhandled filter rule %r, returning no screenshots", rule)
        return []

    def evaluate_folder(self, folder_id: int) -> list[Screenshot]:
        """Evaluate a stored smart folder.

        Missing folders, plain folders and undecodable rules all yield an
        empty list.
        """
        folder = self.metadata.get_folder(folder_id)
        if folder is None or not folder["is_smart"]:
            return []
        try:
            rule = parse_filter_rule(folder["filter_rules"])
        except InvalidFilterRuleError as e:
            logger.warning("Smart folder %s has an unusable rule: %s", folder_id, e)
            return []
        return self.evaluate(rule)

    def smart_folders(self) -> list[SmartFolder]:
        """All smart folders whose rules decode; the rest are logged and skipped."""
        folders = []
        for folder in self.metadata.all_folders():
            if not folder["is_smart"]:
                continue
            try:
                rule = parse_filter_rule(folder["filter_rules"])
            except InvalidFilterRuleError as e:
                logger.warning("Skipping smart folder %s: %s", folder["id"], e)
                continue
            folders.append(SmartFolder(id=folder["id"], name=folder["name"], filter_rule=rule))
        return folders
