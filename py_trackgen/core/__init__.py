"""
Core track generation functionality.
"""

from .mulberry_prng import Mulberry32, cyrb128
from .exceptions import ClosureError, ProximityError, TrackGenerationError, TrackParameterError
from .cone_sampler import sample_cone
from .path_growth import GrownPath, grow_path, smooth_points, find_proximity_violations
from .path_walk import walk_path
from .closed_chain import ChainResult, generate_closed_chain, solve_closed_chain
from .catmull_rom import ClosedCatmullRomCurve, FrenetFrames
from .ribbon_mesh import RibbonMesh, RibbonOptions, extrude_ribbon
from .camera_fit import CameraFit, bounding_sphere, fit_camera
from .track_generator import GeneratedTrack, PathStrategy, TrackParameters, TrackQualityReport, generate_track

__all__ = ['Mulberry32', 'cyrb128',
           'TrackGenerationError', 'TrackParameterError', 'ClosureError', 'ProximityError',
           'sample_cone', 'GrownPath', 'grow_path', 'smooth_points', 'find_proximity_violations',
           'walk_path', 'ChainResult', 'generate_closed_chain', 'solve_closed_chain',
           'ClosedCatmullRomCurve', 'FrenetFrames', 'RibbonMesh', 'RibbonOptions', 'extrude_ribbon',
           'CameraFit', 'bounding_sphere', 'fit_camera',
           'GeneratedTrack', 'PathStrategy', 'TrackParameters', 'TrackQualityReport', 'generate_track']
