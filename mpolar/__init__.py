from mpolar.grid import PolarGrid, mpolar_grid
from mpolar.methods.forward import mpolar_dft, mpolar_fft
from mpolar.methods.inverse import damping_weights, inverse_mpolar_fft

__version__ = "0.1.0"
