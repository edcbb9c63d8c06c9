import logging
from typing import List

logger = logging.getLogger(__name__)


class URLParser:
    def parse_url_list(self, raw_value: str, name: str) -> List[str]:
        items = [v.strip() for v in raw_value.split(",") if v.strip()]

        valid_items = [
            v for v in items if v.startswith("http://") or v.startswith("https://")
        ]
        if items and len(valid_items) != len(items):
            logger.warning(
                f"Ignoring {len(items) - len(valid_items)} malformed origin(s) in {name}"
            )

        return valid_items


parser = URLParser()
