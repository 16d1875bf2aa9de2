"""
Model-backed aesthetic scoring with CLIP/SigLIP.

Optional: the extractor only needs the protocols in scorers.py and never
imports this module itself.
"""

import threading
from typing import Optional, Sequence, Tuple

import torch
from PIL import Image
from transformers import AutoModel, AutoProcessor

from .hardware import (
    get_optimal_attention_implementation,
    get_optimal_dtype,
    select_device,
)

DEFAULT_MODEL = "google/siglip2-base-patch16-naflex"
DEFAULT_PROMPTS = (
    "a beautiful, sharp, well composed photo",
    "a blurry, badly exposed, pointless photo",
)

# Serializes model loading when several scorers initialise at once
_model_loading_lock = threading.Lock()


def load_model(model_name: str, device: torch.device) -> Tuple[torch.nn.Module, torch.dtype]:
    """
    Load a vision-language model, trying progressively safer settings.
    Returns: (model in eval mode on device, dtype it was loaded with)
    """
    optimal_dtype = get_optimal_dtype(device)
    attn_implementation = get_optimal_attention_implementation()

    loading_strategies = [
        {
            "name": f"{optimal_dtype} with {attn_implementation}",
            "kwargs": {
                "dtype": optimal_dtype,
                "attn_implementation": (
                    attn_implementation if attn_implementation != "eager" else None
                ),
            },
        },
        {
            "name": f"{optimal_dtype} with eager attention",
            "kwargs": {"dtype": optimal_dtype},
        },
        {
            "name": "float32 with eager attention",
            "kwargs": {"dtype": torch.float32},
        },
    ]

    last_error = None
    for strategy in loading_strategies:
        load_kwargs = {k: v for k, v in strategy["kwargs"].items() if v is not None}
        try:
            print(f"Loading {model_name} with {strategy['name']}...")
            model = AutoModel.from_pretrained(model_name, **load_kwargs)
            return model.to(device).eval(), load_kwargs["dtype"]
        except Exception as e:
            print(f"Warning: Failed to load with {strategy['name']}: {e}")
            last_error = e
            if device.type == "cuda":
                torch.cuda.empty_cache()

    raise RuntimeError(f"Failed to load {model_name} with any strategy") from last_error


class ClipAestheticScorer:
    """
    Zero-shot aesthetic quality from a CLIP/SigLIP model.

    The image is compared against a positive and a negative prompt; the
    softmax probability of the positive prompt is the score. The model is
    loaded on first use unless one is injected.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        device: Optional[torch.device] = None,
        prompts: Sequence[str] = DEFAULT_PROMPTS,
        model=None,
        processor=None,
    ):
        if len(prompts) != 2:
            raise ValueError("prompts must be a (positive, negative) pair")
        self.model_name = model_name
        self.device = device if device is not None else select_device()
        self.prompts = list(prompts)
        self._model = model
        self._processor = processor
        self._dtype = torch.float32
        self._inference_lock = threading.Lock()

    def _ensure_loaded(self):
        if self._model is not None and self._processor is not None:
            return
        with _model_loading_lock:
            if self._model is None:
                self._model, self._dtype = load_model(self.model_name, self.device)
            if self._processor is None:
                self._processor = AutoProcessor.from_pretrained(self.model_name)

    def _prepare(self, inputs) -> dict:
        prepared = {}
        for key, value in inputs.items():
            if torch.is_tensor(value):
                if value.is_floating_point():
                    value = value.to(self.device, dtype=self._dtype)
                else:
                    value = value.to(self.device)
            prepared[key] = value
        return prepared

    def score(self, image: Image.Image) -> float:
        self._ensure_loaded()
        inputs = self._processor(
            text=self.prompts,
            images=[image],
            padding="max_length",
            return_tensors="pt",
        )
        with self._inference_lock, torch.no_grad():
            outputs = self._model(**self._prepare(inputs))
        logits = outputs.logits_per_image.float()[0]
        probs = torch.softmax(logits, dim=-1)
        return float(probs[0].item())
