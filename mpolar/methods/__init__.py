from mpolar.utils import TransformMethod
from . import forward
from . import inverse

'''
METHODS ARCHITECTURE: each TransformMethod exposes
  run (input, grid, ...) -> Timed(value, elapsed, peak_memory)
The fast transforms build their FINUFFT plans (forward.prepare_plan) and
release them (forward.cleanup) around their own timed step, so callers only
need the registry to pick a method by name.
'''

# map transform method enum to function on methods module init
METHODS = {
  TransformMethod.NDFT: forward.mpolar_dft,
  TransformMethod.NFFT: forward.mpolar_fft,
  TransformMethod.INFFT: inverse.inverse_mpolar_fft,
}

def get_method_fxn(method: TransformMethod):
    try:
        return METHODS[TransformMethod(method)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown method: {method}")
