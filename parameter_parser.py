# parameter_parser.py
import logging
import re
from dataclasses import dataclass, field, fields
from types import MappingProxyType

logger = logging.getLogger(__name__)

STEPS_MARKER = 'Steps:'

# Labels already captured by the named fields of the record
CAPTURED_LABELS = frozenset([
    'Steps', 'Sampler', 'Schedule type', 'CFG scale', 'Seed', 'Model', 'Size'
])

PROMPT_PATTERN = re.compile(r'^(.*?)(?:Negative prompt:|\Z)', re.DOTALL)
NEGATIVE_PROMPT_PATTERN = re.compile(r'Negative prompt:(.*?)(?:Steps:|\Z)', re.DOTALL)
PARAMS_PATTERN = re.compile(
    r'Steps: ([^,]+), Sampler: ([^,]+), Schedule type: ([^,]+), '
    r'CFG scale: ([^,]+), Seed: ([^,]+)(?:, .+)?'
)
LEGACY_PARAMS_PATTERN = re.compile(
    r'Steps: ([^,]+), Sampler: ([^,]+), CFG scale: ([^,]+), Seed: ([^,]+)(?:, .+)?'
)
MODEL_PATTERN = re.compile(r'Model: ([^,]+)')
SIZE_PATTERN = re.compile(r'Size: (\d+x\d+)')

STEPS_GROUP = ('steps', 'sampling_method', 'cfg_scale', 'seed')


class UnparseableSegmentError(ValueError):
    """A `Label: value` segment that could not be split."""


@dataclass(frozen=True)
class ParameterRecord:
    """Canonical generation parameters. Empty string means "not found"."""

    prompt: str = ''
    negative_prompt: str = ''
    sampling_method: str = ''
    scheduler: str = ''
    cfg_scale: str = ''
    steps: str = ''
    seed: str = ''
    model: str = ''
    resolution: str = ''
    other_params: MappingProxyType = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )

    def to_dict(self):
        """Plain dict copy, safe to serialize as JSON."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['other_params'] = dict(self.other_params)
        return data


class _Accumulator:
    """Mutable working state for a single extract() call."""

    def __init__(self):
        self.values = {name: '' for name in STEPS_GROUP}
        self.values.update(prompt='', negative_prompt='', scheduler='', model='', resolution='')
        self.other_params = {}

    def get(self, name):
        return self.values[name]

    def set(self, name, value, fill_only=False):
        if fill_only and self.values[name]:
            return
        self.values[name] = value

    def freeze(self):
        return ParameterRecord(
            other_params=MappingProxyType(dict(self.other_params)),
            **self.values
        )


def extract_prompt(text, acc, fill_only=False):
    """Split free text into prompt and negative prompt."""
    prompt_match = PROMPT_PATTERN.match(text)
    if prompt_match:
        acc.set('prompt', prompt_match.group(1).strip(), fill_only)

    negative_match = NEGATIVE_PROMPT_PATTERN.search(text)
    if negative_match:
        acc.set('negative_prompt', negative_match.group(1).strip(), fill_only)


def extract_parameters(text, acc, fill_only=False):
    """Pull the steps group, scheduler, model and size out of a parameter line."""
    if not fill_only or any(not acc.get(name) for name in STEPS_GROUP):
        params_match = PARAMS_PATTERN.search(text)
        if params_match:
            logger.debug("Matched parameters with scheduler")
            steps, sampler, scheduler, cfg_scale, seed = (
                value.strip() for value in params_match.groups()
            )
            acc.set('scheduler', scheduler, fill_only)
        else:
            params_match = LEGACY_PARAMS_PATTERN.search(text)
            if params_match:
                logger.debug("Matched legacy parameters without scheduler")
                steps, sampler, cfg_scale, seed = (
                    value.strip() for value in params_match.groups()
                )
        if params_match:
            acc.set('steps', steps, fill_only)
            acc.set('sampling_method', sampler, fill_only)
            acc.set('cfg_scale', cfg_scale, fill_only)
            acc.set('seed', seed, fill_only)
    elif not acc.get('scheduler'):
        # Group already complete, the scheduler may still be missing
        params_match = PARAMS_PATTERN.search(text)
        if params_match:
            acc.set('scheduler', params_match.group(3).strip(), fill_only)

    model_match = MODEL_PATTERN.search(text)
    if model_match:
        acc.set('model', model_match.group(1).strip(), fill_only)

    size_match = SIZE_PATTERN.search(text)
    if size_match:
        acc.set('resolution', size_match.group(1).strip(), fill_only)


def split_segment(segment):
    """Split `Label: value` into a (label, value) pair."""
    label, colon, value = segment.partition(':')
    label = label.strip()
    if not colon or not label:
        raise UnparseableSegmentError(segment)
    return label, value.strip()


def parameter_section(text):
    """Return the part of the text holding `Label: value` segments.

    The section starts at `Steps:`. Without that marker it starts at the end
    of the negative prompt, or at the start of the text when there is none.
    """
    start = text.find(STEPS_MARKER)
    if start != -1:
        return text[start:]
    negative_match = NEGATIVE_PROMPT_PATTERN.search(text)
    if negative_match:
        return text[negative_match.end():]
    return text


def extract_other_params(text, acc):
    """Collect every `Label: value` pair not captured by a named field."""
    for segment in parameter_section(text).split(','):
        if not segment.strip():
            continue
        try:
            label, value = split_segment(segment)
        except UnparseableSegmentError:
            logger.debug(f"Skipping unparseable segment: {segment!r}")
            continue
        if label not in CAPTURED_LABELS:
            acc.other_params[label] = value


def _text_field(tags, name, key):
    tag = tags.get(name)
    if not isinstance(tag, dict):
        return None
    text = tag.get(key)
    if isinstance(text, str) and text:
        return text
    return None


def _tag_text(name, key='description', prompt_missing=False):
    """Build a text source for one tag of the pipeline."""
    def source(tags, acc):
        if prompt_missing and acc.get('prompt'):
            return None
        return _text_field(tags, name, key)
    return source


def _from_description(text, acc):
    extract_prompt(text, acc)
    extract_parameters(text, acc)
    extract_other_params(text, acc)


def _fill_prompt(text, acc):
    extract_prompt(text, acc, fill_only=True)


def _from_parameters(text, acc):
    extract_prompt(text, acc, fill_only=True)
    extract_parameters(text, acc, fill_only=True)


# Ordered (tag name, text source, extractor) pipeline. A text source returns
# the text to feed the extractor, or None to skip the step.
PIPELINE = (
    ('Description', _tag_text('Description'), _from_description),
    ('UserComment', _tag_text('UserComment', key='value', prompt_missing=True), _fill_prompt),
    ('parameters', _tag_text('parameters'), _from_parameters),
    ('Comment', _tag_text('Comment', prompt_missing=True), _fill_prompt),
)


def extract(tags):
    """Extract A1111/Stable Diffusion parameters from a tag mapping.

    Tags are consulted in a fixed order (Description, UserComment, parameters,
    Comment). The first source to provide a field wins; later sources only
    fill fields that are still empty. Malformed text never raises, whatever
    was extracted before a failure is returned.
    """
    tags = tags or {}
    logger.debug(f"Extracting parameters from tags: {list(tags.keys())}")
    acc = _Accumulator()

    for name, source, extractor in PIPELINE:
        try:
            text = source(tags, acc)
            if text is None:
                continue
            logger.debug(f"Found {name} tag: {text!r}")
            extractor(text, acc)
        except Exception:
            logger.exception(f"Error extracting A1111 parameters from {name} tag")

    return acc.freeze()
