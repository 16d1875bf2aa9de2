"""
Device, dtype and attention selection for the optional learned scorers.
"""

import importlib.util
from typing import Dict

import torch


def select_device(prefer_gpu: bool = True) -> torch.device:
    """Pick the first CUDA device when available, else CPU"""
    if prefer_gpu and torch.cuda.is_available():
        return torch.device("cuda:0")
    return torch.device("cpu")


def check_bfloat16_support() -> bool:
    """Check if bfloat16 is well supported on the current CUDA device"""
    if not torch.cuda.is_available():
        return False
    try:
        major, _ = torch.cuda.get_device_capability()
    except RuntimeError:
        return False
    # Ampere (8.0) and newer
    return major >= 8


def get_optimal_dtype(device: torch.device) -> torch.dtype:
    """
    Determine optimal dtype based on hardware.
    Priority: bfloat16 > float16 > float32 (CPU always float32)
    """
    if device.type != "cuda":
        return torch.float32
    if check_bfloat16_support():
        return torch.bfloat16
    return torch.float16


def get_optimal_attention_implementation() -> str:
    """
    Determine optimal attention implementation.
    Priority: flash_attention_2 > sdpa > eager
    """
    if torch.cuda.is_available() and importlib.util.find_spec("flash_attn") is not None:
        return "flash_attention_2"
    if hasattr(torch.nn.functional, "scaled_dot_product_attention"):
        return "sdpa"
    return "eager"


def get_device_info(device: torch.device) -> Dict[str, object]:
    """
    Describe a device for the CLI configuration summary.
    Memory figures are in GB and zero for CPU.
    """
    if device.type != "cuda":
        return {"name": "cpu", "total_memory": 0.0, "free_memory": 0.0}

    index = device.index if device.index is not None else 0
    props = torch.cuda.get_device_properties(index)
    total_memory = props.total_memory / (1024**3)
    reserved = torch.cuda.memory_reserved(index) / (1024**3)
    return {
        "name": torch.cuda.get_device_name(index),
        "total_memory": total_memory,
        "free_memory": total_memory - reserved,
    }
