"""
Harvest Pipeline
Orchestrates metadata enrichment for content items: EXIF/IPTC extraction, place
hierarchy, timezone, weather, SEO description and caption.
"""
import json
import re
import sys
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from core.correction_tables import CorrectionError, CorrectionTables
from core.database import HarvesterDatabase
from core.exif_extractor import ExifExtractor
from core.metadata_store import MetadataStore
from core.place_hierarchy import LocationHierarchyManager, PlaceTaxonomy
from core.seo_description import SeoDescriptionGenerator
from core.seo_vocabulary import SeoVocabulary
from core.timezone_resolver import TimezoneEnricher, TimezoneResolver
from core.weather_enricher import (
    BOOKKEEPING_FIELDS,
    WeatherClient,
    WeatherDispatcher,
    WeatherEnricher,
)
from utils.config_utils import load_settings
from utils.logger import logDebug, logError, logInfo, logProgress
from utils.text_utils import strip_html
from utils.validator import validate_config

# Every field the harvester owns; cleared together when an item is re-processed
CUSTOM_FIELDS = [
    "camera", "lens", "fstop", "shutterspeed", "iso", "focallength",
    "GPS", "GPSLat", "GPSLon", "GPSAlt", "geoHash", "GPCode",
    "photo_width", "photo_height", "photo_dimensions", "photo_megapixels", "photo_aspect_ratio",
    "dateTimeOriginal", "dateOriginal", "yearOriginal", "monthOriginal", "monthNameOriginal",
    "dayOriginal", "dayOfWeekOriginal", "hourOriginal", "minuteOriginal", "timeOriginal",
    "timeOfDayContext", "unixTime", "gmtOffset", "timeZone",
    "location", "city", "state", "country",
    "wXSummary", "temperature",
    "seo_description", "caption",
]

SKIPPED_STATUSES = ("trash", "auto-draft")
SKIPPED_TYPES = ("revision", "attachment")
MIN_CAPTION_LENGTH = 3

IMG_SRC = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"']", re.IGNORECASE)
THUMBNAIL_SUFFIX = re.compile(r"-\d+x\d+(?=\.[A-Za-z0-9]+$)")


class ProcessingContext:
    """Per-request dedupe state: items already processed and weather jobs already queued."""

    def __init__(self):
        self.processed = set()
        self.weather_scheduled = set()


class HarvestPipeline:
    def __init__(self, config_path: str = "config/harvester_config.json", config: Optional[Dict] = None,
                 clock: Callable[[], float] = time.time):
        self.config_path = config_path
        self.config = load_settings(config) if config is not None else self._load_config()
        validate_config(self.config)
        self.paths = self.config.get('paths', {})
        processing = self.config.get('processing', {})
        self.enabled_types = list(processing.get('enabled_content_types', ['post']))
        self.delete_on_update = bool(processing.get('delete_on_update', True))
        self.media_root = Path(self.paths['media_root']) if self.paths.get('media_root') else None

        self.db = HarvesterDatabase(self.paths['database'])
        self.corrections = CorrectionTables(self.db)
        self.corrections.seed_defaults()
        self.store = MetadataStore(self.paths['metadata_store'])

        self.extractor = ExifExtractor(self.store, self.corrections)
        self.taxonomy = PlaceTaxonomy(self.db)
        self.hierarchy = LocationHierarchyManager(self.taxonomy, self.store)

        tz_cfg = self.config.get('timezone', {})
        self.timezone_enabled = bool(tz_cfg.get('enabled', True))
        self.timezone = TimezoneEnricher(self.store, TimezoneResolver(self.config))

        wx_cfg = self.config.get('weather', {})
        self.weather_client = WeatherClient(self.config)
        self.weather_enabled = bool(wx_cfg.get('enabled', False)) and bool(self.weather_client.api_key)
        self.weather = WeatherEnricher(
            self.store,
            self.weather_client,
            cooldown_seconds=int(wx_cfg.get('failure_cooldown_seconds', 3600)),
            clock=clock,
        )
        self.weather_dispatcher = WeatherDispatcher(self.weather)

        self.seo = SeoDescriptionGenerator(
            self.store,
            self.hierarchy,
            SeoVocabulary.from_config(self.config),
            max_length=int(self.config.get('seo', {}).get('max_length', 155)),
        )

    def _load_config(self) -> Dict:
        """Load harvester configuration"""
        with open(self.config_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
        return load_settings(raw)

    # ---------- Helpers ----------
    def _resolve_media_path(self, path: str) -> Optional[Path]:
        candidate = Path(path)
        if not candidate.is_absolute() and self.media_root is not None:
            candidate = self.media_root / candidate
        return candidate

    def locate_image(self, item: Dict) -> Optional[str]:
        """Image for an item: explicit image_path, else the first <img> in its content.

        Resized thumbnails ("photo-300x200.jpg") resolve to the original upload when present.
        """
        if item.get('image_path'):
            path = self._resolve_media_path(item['image_path'])
            return str(path) if path and path.exists() else None

        match = IMG_SRC.search(item.get('content') or '')
        if not match:
            return None
        src_path = urlparse(match.group(1)).path.lstrip('/')
        if not src_path:
            return None

        candidates = [self._resolve_media_path(src_path)]
        if self.media_root is not None:
            candidates.append(self.media_root / Path(src_path).name)
        for candidate in candidates:
            original = candidate.with_name(THUMBNAIL_SUFFIX.sub('', candidate.name))
            if original.exists():
                return str(original)
            if candidate.exists():
                return str(candidate)
        return None

    def _should_process(self, item: Dict) -> bool:
        if item.get('status') in SKIPPED_STATUSES or item.get('post_type') in SKIPPED_TYPES:
            return False
        return item.get('post_type', 'post') in self.enabled_types

    def _has_existing_metadata(self, item_id: str) -> bool:
        return any(self.store.exists(item_id, key) for key in ('camera', 'GPS', 'dateOriginal'))

    def clear_metadata(self, item_id) -> int:
        """Remove every harvested field, weather bookkeeping and the place assignment.

        The last weather failure survives so a re-save inside the cooldown window
        does not hit the API again.
        """
        item_id = str(item_id)
        keys = CUSTOM_FIELDS + [k for k in BOOKKEEPING_FIELDS if k != "_weather_last_failure"]
        removed = self.store.delete_keys(item_id, keys)
        self.taxonomy.clear_assignment(item_id)
        logDebug(f"Item {item_id}: cleared {removed} metadata fields")
        return removed

    def extract_caption(self, item: Dict) -> Optional[str]:
        item_id = str(item.get('id'))
        caption = strip_html(item.get('content', ''))
        if len(caption) <= MIN_CAPTION_LENGTH:
            return None
        self.store.set_if_absent(item_id, 'caption', caption)
        return self.store.get(item_id, 'caption')

    # ---------- Processing ----------
    def process_item(self, item: Dict, update: bool = False, context: Optional[ProcessingContext] = None,
                     manual: bool = False) -> bool:
        """Run every enrichment step for one content item. Returns False if the item was skipped."""
        context = context or ProcessingContext()
        item_id = str(item.get('id'))
        if item_id in context.processed:
            logDebug(f"Item {item_id} already processed in this request")
            return False
        context.processed.add(item_id)

        if not self._should_process(item):
            logDebug(f"Item {item_id} skipped (type={item.get('post_type')}, status={item.get('status')})")
            return False

        if self.delete_on_update and (update or self._has_existing_metadata(item_id)):
            self.clear_metadata(item_id)

        image_path = self.locate_image(item)
        if image_path:
            self.extractor.extract_from_file(item_id, image_path)
        else:
            logDebug(f"Item {item_id}: no image found")

        # Node is built from the flat fields themselves, so there is nothing to backfill
        self.hierarchy.assign_from_metadata(item_id)

        if self.timezone_enabled:
            self.timezone.ensure_gmt_offset(item_id)

        if self.weather_enabled and not manual:
            self.weather_dispatcher.dispatch(item_id, context)

        self.seo.generate_description(item)
        self.extract_caption(item)
        logInfo(f"✅ Item {item_id} processed")
        return True

    def process_items(self, items: List[Dict], update: bool = False) -> Dict[str, int]:
        context = ProcessingContext()
        stats = {'processed': 0, 'skipped': 0}
        for item in items:
            if self.process_item(item, update=update, context=context):
                stats['processed'] += 1
            else:
                stats['skipped'] += 1
        return stats

    def manual_refresh(self, item: Dict) -> Dict:
        """Re-process an item and fetch weather synchronously. Returns {'error', 'metadata'}."""
        item_id = str(item.get('id'))
        self.process_item(item, update=True, context=ProcessingContext(), manual=True)
        error = None
        if self.config.get('weather', {}).get('enabled', False):
            error = self.weather.refresh_now(item_id)
            if error is None:
                self.seo.generate_description(item, force=True)
        return {'error': error, 'metadata': self.store.entry(item_id)}

    def force_retry_weather(self, item_id) -> Optional[str]:
        self.weather.clear(str(item_id))
        return self.weather.refresh_now(str(item_id))

    def regenerate_seo(self, item: Dict) -> Optional[str]:
        return self.seo.generate_description(item, force=True)

    def assign_place(self, item: Dict, node_id: int) -> Optional[str]:
        """Manual place assignment: backfill flat fields, then rebuild the description."""
        item_id = str(item.get('id'))
        if self.taxonomy.get_node(node_id) is None:
            raise ValueError(f"Unknown place node {node_id}")
        self.taxonomy.assign(item_id, node_id)
        self.hierarchy.sync_flat_fields(item_id)
        return self.regenerate_seo(item)

    def bulk_generate_seo(self, items: List[Dict], force: bool = False) -> Dict[str, int]:
        return self.seo.bulk_generate(items, force=force)

    def seo_statistics(self, items: List[Dict]) -> Dict[str, int]:
        return self.seo.statistics(items)

    def wait_for_background_jobs(self, timeout: Optional[float] = None) -> None:
        self.weather_dispatcher.wait(timeout)


def _find_item(items: List[Dict], item_id) -> Optional[Dict]:
    for item in items:
        if str(item.get('id')) == str(item_id):
            return item
    return None


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(description="EXIF Harvester: photo metadata enrichment and SEO descriptions")
    parser.add_argument("--config", default="config/harvester_config.json", help="Harvester config file")
    parser.add_argument("--items", help="JSON file with content items")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output to terminal")
    sub = parser.add_subparsers(dest="command", required=True)

    process = sub.add_parser("process", help="Harvest metadata for every item")
    process.add_argument("--update", action="store_true", help="Treat items as updated (clears existing metadata)")

    refresh = sub.add_parser("refresh", help="Manual refresh of one item, weather fetched synchronously")
    refresh.add_argument("--id", required=True, help="Item id")

    weather = sub.add_parser("retry-weather", help="Force a weather retry for one item")
    weather.add_argument("--id", required=True, help="Item id")

    seo = sub.add_parser("seo", help="Bulk-generate SEO descriptions")
    seo.add_argument("--force", action="store_true", help="Regenerate existing descriptions")

    sub.add_parser("seo-stats", help="Report SEO description coverage")

    corrections = sub.add_parser("corrections", help="Manage correction tables")
    corrections.add_argument("action", choices=["list", "add", "delete"])
    corrections.add_argument("--table", required=True, choices=["camera", "lens", "location"])
    corrections.add_argument("--raw", help="Raw EXIF/IPTC value")
    corrections.add_argument("--value", help="Display value")
    corrections.add_argument("--entry-id", type=int, help="Existing entry id (update/delete)")

    place = sub.add_parser("place", help="Assign an item to a place node")
    place.add_argument("--id", required=True, help="Item id")
    place.add_argument("--node", required=True, type=int, help="Place node id")
    return parser


def main(argv=None) -> int:
    from utils.cli import list_corrections, load_config, load_items
    from utils.logger import setup_logging

    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    log_file = setup_logging(args.verbose, config.get('paths', {}).get('log_dir') or 'logs')
    logInfo(f"📝 Logging to {log_file}")

    try:
        runner = HarvestPipeline(args.config, config=config)
    except ValueError as e:
        logError(str(e))
        return 1

    items = load_items(args.items)

    if args.command == "process":
        stats = runner.process_items(items, update=args.update)
        runner.wait_for_background_jobs()
        logProgress(f"✅ Processed {stats['processed']} items ({stats['skipped']} skipped)")
    elif args.command in ("refresh", "place"):
        item = _find_item(items, args.id)
        if item is None:
            logError(f"Item {args.id} not found in {args.items}")
            return 1
        if args.command == "refresh":
            result = runner.manual_refresh(item)
            if result['error']:
                logError(f"Weather: {result['error']}")
            print(json.dumps(result['metadata'], indent=2, ensure_ascii=False))
        else:
            try:
                description = runner.assign_place(item, args.node)
            except ValueError as e:
                logError(str(e))
                return 1
            logProgress(f"📍 Item {args.id} assigned to node {args.node}: {description}")
    elif args.command == "retry-weather":
        error = runner.force_retry_weather(args.id)
        if error:
            logError(f"Weather: {error}")
            return 1
        logProgress(f"🌤️ Weather refreshed for item {args.id}")
    elif args.command == "seo":
        stats = runner.bulk_generate_seo(items, force=args.force)
        logProgress(f"📝 SEO: {stats['processed']} processed, {stats['generated']} generated, "
                    f"{stats['skipped']} skipped, {stats['errors']} errors")
    elif args.command == "seo-stats":
        stats = runner.seo_statistics(items)
        logProgress(f"📊 {stats['with_descriptions']}/{stats['total_posts']} items have descriptions "
                    f"({stats['without_descriptions']} missing)")
    elif args.command == "corrections":
        try:
            table = runner.corrections.by_name(args.table)
            if args.action == "list":
                list_corrections(table)
            elif args.action == "add":
                row = table.upsert(args.raw, args.value, entry_id=args.entry_id)
                logProgress(f"✅ {table.label} correction saved: {row['raw_name']} -> {row[table.value_column]}")
            elif args.action == "delete":
                if args.entry_id is None or not table.delete(args.entry_id):
                    logError(f"No {table.label.lower()} correction with id {args.entry_id}")
                    return 1
                logProgress(f"🗑️ {table.label} correction {args.entry_id} deleted")
        except CorrectionError as e:
            logError(str(e))
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
