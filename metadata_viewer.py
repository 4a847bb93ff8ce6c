# metadata_viewer.py
import re
from pathlib import Path

UNKNOWN = 'Unknown'
SUPPORTED_EXTENSIONS = ('.png', '.jpg', '.jpeg')

RESOLUTION_SEPARATOR = re.compile(r'[x×]', re.IGNORECASE)

PARAMETER_LABELS = [
    ('model', 'Model'),
    ('sampling_method', 'Sampling Method'),
    ('scheduler', 'Scheduler'),
    ('cfg_scale', 'CFG Scale'),
    ('steps', 'Steps'),
    ('seed', 'Seed'),
]

# Field order of the A1111 parameter line
PARAMETER_LINE_LABELS = [
    ('steps', 'Steps'),
    ('sampling_method', 'Sampler'),
    ('scheduler', 'Schedule type'),
    ('cfg_scale', 'CFG scale'),
    ('seed', 'Seed'),
    ('resolution', 'Size'),
    ('model', 'Model'),
]


def format_resolution(resolution, min_side=512):
    """Show the original resolution, or "Unknown" if it is missing or too small."""
    parts = RESOLUTION_SEPARATOR.split(resolution or '')
    if len(parts) != 2:
        return UNKNOWN
    try:
        width, height = (int(part.strip()) for part in parts)
    except ValueError:
        return UNKNOWN
    if width < min_side or height < min_side:
        return UNKNOWN
    return resolution


def format_image_info(image_info):
    if not image_info:
        return ''
    return f"{image_info['width']} × {image_info['height']} • {str(image_info['format']).upper()}"


def format_file_size(size_bytes):
    """Format file size in human-readable format."""
    if not size_bytes:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB"]
    i = 0
    while size_bytes >= 1024 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.1f} {size_names[i]}"


def build_parameter_items(metadata, min_side=512, include_other=True):
    """Ordered (label, value) pairs for the parameter grid."""
    items = [(label, metadata.get(key, '')) for key, label in PARAMETER_LABELS]
    items.append(('Original Resolution', format_resolution(metadata.get('resolution', ''), min_side)))
    if include_other:
        items.extend(metadata.get('other_params', {}).items())
    return items


def is_supported_upload(filename):
    return Path(filename or '').suffix.lower() in SUPPORTED_EXTENSIONS


def to_parameters_text(metadata):
    """Rebuild an A1111 style parameter block from a parsed record."""
    lines = []
    if metadata.get('prompt'):
        lines.append(metadata['prompt'])
    if metadata.get('negative_prompt'):
        lines.append(f"Negative prompt: {metadata['negative_prompt']}")

    pairs = [(label, metadata.get(key)) for key, label in PARAMETER_LINE_LABELS]
    pairs.extend(metadata.get('other_params', {}).items())
    params = ', '.join(f"{label}: {value}" for label, value in pairs if value)
    if params:
        lines.append(params)
    return '\n'.join(lines)
