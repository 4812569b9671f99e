"""
SEO Vocabulary
Term lists used to filter and score tags, and the word-variation rules behind
"matches a term" checks. Every list can be overridden or extended from the
`seo` section of the config.
"""
import re
from typing import Dict, Iterable, List, Set

from core.region_names import COUNTRY_NAMES, STATE_ABBREVIATIONS
from utils.text_utils import normalize

PREMIUM_TERMS = ['landscape', 'nature', 'wildlife', 'portrait', 'macro', 'architecture', 'sunset', 'sunrise']
HIGH_TERMS = ['mountain', 'forest', 'waterfall', 'beach', 'cityscape', 'historic', 'travel', 'bird']

STANDARD_TERMS = [
    # Genres and styles
    'landscape', 'nature', 'wildlife', 'macro', 'portrait', 'documentary', 'street photography',
    'aerial', 'drone', 'panoramic', 'black and white', 'monochrome', 'hdr', 'long exposure',
    'night photography', 'astrophotography', 'milky way', 'stars', 'sunrise', 'sunset', 'golden hour',
    'fine art', 'conceptual', 'abstract', 'minimalism', 'minimalist',
    # Architecture and urban
    'architecture', 'architectural', 'modern', 'contemporary', 'mid-century modern', 'brutalist',
    'art deco', 'gothic', 'victorian', 'industrial', 'urban', 'cityscape', 'skyline',
    'skyscrapers', 'office buildings', 'downtown', 'business district', 'historic district',
    # Nature and outdoors
    'mountains', 'peaks', 'summit', 'valley', 'forest', 'trees', 'wilderness', 'national park',
    'state park', 'hiking', 'trail', 'waterfall', 'river', 'lake', 'ocean', 'beach', 'coastline',
    'desert', 'canyon', 'rock formation', 'geological', 'seasonal', 'autumn', 'fall foliage',
    'spring', 'winter', 'snow', 'ice', 'frozen',
    # Wildlife
    'birds', 'bird photography', 'raptors', 'eagles', 'hawks', 'owls', 'waterfowl', 'songbirds',
    'mammals', 'deer', 'elk', 'bear', 'mountain goat', 'bighorn sheep', 'wildlife refuge',
    'migration', 'nesting', 'feeding', 'behavior',
    # Cultural and historical
    'historic', 'heritage', 'landmark', 'monument', 'museum', 'cultural', 'traditional',
    'archaeological', 'ruins', 'vintage', 'antique', 'restoration', 'preservation',
    # Events and activities
    'festival', 'concert', 'performance', 'sports', 'recreation', 'outdoor recreation',
    'camping', 'backpacking', 'climbing', 'skiing', 'cycling', 'running', 'marathon',
    # Art
    'art', 'artistic', 'creative', 'design', 'sculpture', 'mural', 'street art', 'graffiti',
    'installation', 'gallery', 'exhibition', 'studio', 'workshop',
    # Travel
    'travel', 'tourism', 'destination', 'scenic', 'viewpoint', 'overlook', 'vista',
    'roadtrip', 'adventure', 'exploration', 'discovery', 'hidden gem', 'local',
    # Weather and atmosphere
    'storm', 'lightning', 'rainbow', 'fog', 'mist', 'dramatic', 'moody', 'atmospheric',
    'reflection', 'silhouette', 'backlit', 'dramatic lighting',
    # Seasonal and holiday
    'christmas', 'holiday', 'seasonal decorations', 'festival of lights', 'celebration',
    'memorial day', 'independence day', 'thanksgiving', 'new year',
]

CANONICAL_TERMS = [
    'landscape', 'portrait', 'macro', 'wildlife', 'street', 'architecture',
    'sunset', 'sunrise', 'ocean', 'mountain', 'nature', 'urban', 'cityscape',
    'seascape', 'forest', 'desert', 'river', 'lake', 'beach', 'cliff',
    'building', 'bridge', 'tower', 'church', 'historic', 'modern',
    'golden hour', 'blue hour', 'storm', 'clouds', 'reflection',
]

# Tags that keep a minimal score even with no supporting text
MINIMUM_VIABLE_TERMS = [
    'landscape', 'landscapes', 'portrait', 'macro', 'wildlife', 'street', 'architecture',
    'sunset', 'sunrise', 'sunrises', 'ocean', 'mountain', 'mountains', 'nature', 'urban', 'cityscape',
    'seascape', 'forest', 'forests', 'desert', 'river', 'lake', 'beach', 'cliff',
    'building', 'bridge', 'tower', 'church', 'historic', 'modern', 'trees', 'tree',
    'golden hour', 'blue hour', 'storm', 'clouds', 'sky', 'reflection', 'water',
    'evergreens', 'pine', 'dawn', 'evening', 'morning', 'afternoon',
]

BLACKLIST_EXACT = [
    # Generic
    'photo', 'picture', 'image', 'photography', 'photographer', 'photos', 'pictures', 'images',
    'camera', 'lens', 'shot', 'shots', 'capture', 'captured', 'shooting',
    # Brands and bodies
    'fuji', 'fujifilm', 'canon', 'nikon', 'sony', 'panasonic', 'olympus', 'leica',
    'fujifilm x-t5', 'canon eos', 'nikon d850', 'sony alpha', 'aps-c', 'full frame',
    'mirrorless', 'dslr',
    # Technical
    'digital', 'raw', 'jpeg', 'jpg', 'editing', 'processed', 'postprocessing', 'lightroom', 'photoshop',
    'aperture', 'shutter', 'speed', 'iso', 'exposure', 'focal', 'length', 'focus', 'autofocus', 'manual focus',
    'metering', 'flash', 'white balance', 'histogram', 'overexposed', 'underexposed', 'stops', 'ev',
    'exif', 'metadata', 'file', 'size', 'resolution', 'megapixel', 'mp', 'dpi', 'pixel', 'pixels',
    'sensor', 'crop', 'full-frame', 'micro four thirds', 'm43', 'format',
    # Generic descriptors
    'beautiful', 'amazing', 'stunning', 'incredible', 'awesome', 'perfect', 'great', 'nice', 'cool',
    'best', 'good', 'bad', 'new', 'old', 'big', 'small', 'large', 'tiny',
    # Generic visuals
    'sky', 'blue sky', 'clouds', 'light', 'shadow', 'color', 'colors', 'bright', 'dark',
    'view', 'scene', 'background', 'foreground', 'detail', 'details', 'texture', 'pattern',
    # Time words
    'morning', 'afternoon', 'evening', 'night', 'daytime', 'nighttime', 'dawn', 'dusk',
    'early', 'late', 'midday', 'noon', 'midnight', 'today', 'yesterday', 'weekend',
    'week', 'month', 'season',
    # Social
    'instagram', 'facebook', 'twitter', 'hashtag', 'social', 'viral', 'trending',
    'bokeh', 'dof', 'depth of field', 'composition',
    # Vague travel words
    'travel', 'trip', 'vacation', 'journey', 'adventure', 'explore', 'wanderlust',
]

BLACKLIST_PATTERNS = [
    'canon eos', 'nikon d', 'sony alpha', 'fujifilm x', 'olympus om',
    'mm f/', 'f/', 'iso ', 'f/1', 'f/2', 'f/3', 'f/4', 'f/5', 'f/6',
    'ttartisan', 'sigma', 'tamron', 'tokina', 'zeiss', 'voigtlander',
    '1/', '2/', '3/', '4/', '5/', '6/', '7/', '8/',
    'mm', 'sec', 'ms',
    'iso', 'ev', 'wb',
    '#', '@',
    'http', 'www.',
    'copyright', '©',
]

SYNONYMS: Dict[str, List[str]] = {
    'ship': ['ships', 'boat', 'boats', 'vessel', 'vessels'],
    'boat': ['boats', 'ship', 'ships', 'vessel', 'vessels'],
    'ocean': ['sea', 'water', 'marine'],
    'sea': ['ocean', 'water', 'marine'],
    'mountain': ['mountains', 'peak', 'peaks', 'hill', 'hills', 'summit'],
    'landscape': ['landscapes', 'scenery', 'scenic', 'vista', 'view'],
    'forest': ['woods', 'woodland', 'trees', 'grove'],
    'beach': ['shore', 'coast', 'coastal', 'shoreline'],
    'waterfall': ['falls', 'cascade'],
    'wildlife': ['animal', 'animals', 'fauna'],
    'bird': ['birds', 'avian', 'birding'],
    'architecture': ['building', 'buildings', 'structure', 'structures', 'architectural'],
    'building': ['buildings', 'architecture', 'structure', 'structures'],
    'street': ['urban', 'city', 'downtown'],
    'cityscape': ['skyline', 'urban landscape'],
    'portrait': ['portraits', 'portraiture'],
    'macro': ['close-up', 'close up', 'detail'],
    'abstract': ['abstraction', 'conceptual'],
    'sunset': ['sunsets', 'golden hour', 'dusk', 'evening'],
    'sunrise': ['sunrises', 'dawn', 'morning'],
    'night': ['nighttime', 'evening', 'nocturnal'],
    'storm': ['storms', 'stormy', 'tempest'],
    'fog': ['foggy', 'mist', 'misty'],
    'snow': ['snowy', 'winter', 'snowfall'],
    'travel': ['tourism', 'destination', 'journey'],
    'historic': ['historical', 'heritage', 'vintage'],
}


def word_variations(word: str, synonyms: Dict[str, List[str]] = None) -> List[str]:
    """Plural/singular forms of a word plus configured synonyms."""
    word = word.lower().strip()
    variations = [word]
    if len(word) > 3:
        if not re.search(r"(s|es|ies)$", word):
            if re.search(r"[^aeiou]y$", word):
                variations.append(word[:-1] + "ies")
            elif re.search(r"(ch|sh|s|x|z)$", word):
                variations.append(word + "es")
            else:
                variations.append(word + "s")
        elif word.endswith("ies"):
            variations.append(word[:-3] + "y")
        elif re.search(r"(ch|sh|s|x|z)es$", word):
            variations.append(word[:-2])
        elif word.endswith("s") and not word.endswith("ss"):
            variations.append(word[:-1])

    table = SYNONYMS if synonyms is None else synonyms
    for synonym in table.get(word, []):
        if synonym not in variations:
            variations.append(synonym.lower())
    return variations


def _lower_all(terms: Iterable[str]) -> List[str]:
    return [t.lower().strip() for t in terms if t and t.strip()]


class SeoVocabulary:
    def __init__(self, premium_terms=None, high_terms=None, standard_terms=None, canonical_terms=None,
                 minimum_terms=None, blacklist_exact=None, blacklist_patterns=None, synonyms=None,
                 region_names=None):
        self.premium_terms = _lower_all(premium_terms or PREMIUM_TERMS)
        self.high_terms = _lower_all(high_terms or HIGH_TERMS)
        self.standard_terms = _lower_all(standard_terms or STANDARD_TERMS)
        self.canonical_terms = set(_lower_all(canonical_terms or CANONICAL_TERMS))
        self.minimum_terms = set(_lower_all(minimum_terms or MINIMUM_VIABLE_TERMS))
        self.blacklist_exact = set(_lower_all(blacklist_exact or BLACKLIST_EXACT))
        self.blacklist_patterns = _lower_all(blacklist_patterns or BLACKLIST_PATTERNS)
        self.synonyms = {k.lower(): _lower_all(v) for k, v in (synonyms or SYNONYMS).items()}
        self.region_names: Set[str] = set(region_names) if region_names else default_region_names()

    @classmethod
    def from_config(cls, config: Dict) -> "SeoVocabulary":
        seo_cfg = config.get('seo', {})
        custom = seo_cfg.get('custom_blacklist', {}) or {}
        synonyms = dict(SYNONYMS)
        synonyms.update(seo_cfg.get('synonyms', {}) or {})
        return cls(
            premium_terms=seo_cfg.get('premium_terms'),
            high_terms=seo_cfg.get('high_terms'),
            standard_terms=seo_cfg.get('standard_terms'),
            blacklist_exact=BLACKLIST_EXACT + list(custom.get('exact', [])),
            blacklist_patterns=BLACKLIST_PATTERNS + list(custom.get('patterns', [])),
            synonyms=synonyms,
        )

    def variations(self, word: str) -> List[str]:
        return word_variations(word, self.synonyms)

    def is_region_name(self, text: str) -> bool:
        return normalize(text) in self.region_names


def default_region_names() -> Set[str]:
    names = {normalize(n) for n in STATE_ABBREVIATIONS}
    names.update(normalize(n) for n in COUNTRY_NAMES)
    return names
