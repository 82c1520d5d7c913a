# Utils package
from .geometry import bind_matches, best_overlap, is_real_template_id
from .image import crop_face_region, face_crop_box

__all__ = ['bind_matches', 'best_overlap', 'is_real_template_id', 'crop_face_region', 'face_crop_box']
