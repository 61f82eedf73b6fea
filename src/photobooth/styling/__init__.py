"""Styling pipeline: decode a JPEG/PNG, apply the photo-booth stage chain,
and encode the result.

Exports
-------
StylingPipeline / process
    Run the whole pipeline on one image.
decode_image / encode_image
    Container codec helpers.
RasterImage
    Decoded bitmap passed between stages.
StyleParameters / STYLE_PARAMETERS
    The fixed constant table read by every stage.
default_stages
    The canonical ordered stage chain.
"""

from .codec import decode_image, encode_image, normalize_source_format, resolve_output_format
from .params import STYLE_PARAMETERS, StyleParameters
from .pipeline import StylingPipeline, process
from .raster import RasterImage
from .stages import (
    ChannelGainStage,
    ClarityStage,
    GrainStage,
    SaturationStage,
    SecondaryTintStage,
    Stage,
    ToneStage,
    VignetteStage,
    WarmToneStage,
    default_stages,
    vignette_mask,
)

__all__ = [
    "STYLE_PARAMETERS",
    "ChannelGainStage",
    "ClarityStage",
    "GrainStage",
    "RasterImage",
    "SaturationStage",
    "SecondaryTintStage",
    "Stage",
    "StyleParameters",
    "StylingPipeline",
    "ToneStage",
    "VignetteStage",
    "WarmToneStage",
    "decode_image",
    "default_stages",
    "encode_image",
    "normalize_source_format",
    "process",
    "resolve_output_format",
    "vignette_mask",
]
