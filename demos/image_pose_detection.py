"""
Image pose detection demo for single images and batch processing.
"""

import argparse
import glob
import json
import os
from pathlib import Path

import cv2

from livepose.config import OverlayConfig
from livepose.errors import LiveposeError
from livepose.inference import OpenCVSurface, OverlayRenderer, OverlayView, PoseDetector
from livepose.models.base_model import MODEL_VARIANTS


def snapshot_to_dict(snapshot):
    """Serializable form of a pose snapshot."""
    return {
        'frame': {
            'width': snapshot.frame.source_width,
            'height': snapshot.frame.source_height,
            'rotation': snapshot.frame.rotation_degrees,
        },
        'space': snapshot.space.value,
        'error': str(snapshot.error) if snapshot.error else None,
        'keypoints': [
            {'name': kp.name, 'x': kp.x, 'y': kp.y, 'confidence': kp.confidence}
            for kp in snapshot.keypoints
        ],
    }


def process_image(detector, view, image_path, output_dir, save_results=False):
    """Detect the pose in one image file and save the rendered overlay."""
    image = cv2.imread(image_path)
    if image is None:
        print(f"Error: Could not read image '{image_path}'")
        return None
    
    print(f"Processing image: {image_path} ({image.shape[1]}x{image.shape[0]})")
    
    snapshot = detector.detect_image(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    view.update_pose(snapshot)
    view.render(OpenCVSurface(image, channel_order='bgr'))
    
    stem = Path(image_path).stem
    output_path = os.path.join(output_dir, f"{stem}_pose.jpg")
    cv2.imwrite(output_path, image)
    
    if snapshot.is_empty:
        print("  No pose detected")
    else:
        visible = sum(1 for kp in snapshot.keypoints if kp.confidence > 0.35)
        print(f"  Visible keypoints: {visible}/{len(snapshot.keypoints)}")
    print(f"  Result saved to: {output_path}")
    
    if save_results:
        with open(os.path.join(output_dir, f"{stem}_pose.json"), 'w') as f:
            json.dump(snapshot_to_dict(snapshot), f, indent=2)
    
    return snapshot


def main():
    """Main function for image pose detection demo."""
    parser = argparse.ArgumentParser(description='Image Pose Detection Demo')
    parser.add_argument('--model', type=str, required=True,
                       help='Path to model file')
    parser.add_argument('--variant', type=str, default='movenet_lightning',
                       choices=sorted(MODEL_VARIANTS),
                       help='Model variant')
    parser.add_argument('--engine', type=str, default='onnx',
                       choices=['onnx', 'torch'],
                       help='Inference engine')
    parser.add_argument('--input', type=str, required=True,
                       help='Input image path or directory')
    parser.add_argument('--output', type=str, default='output',
                       help='Output directory')
    parser.add_argument('--save_results', action='store_true',
                       help='Save detection results as JSON')
    
    args = parser.parse_args()
    
    print("Image Pose Detection Demo")
    print("=" * 40)
    print(f"Model: {args.model} ({args.variant})")
    print(f"Input: {args.input}")
    print(f"Output: {args.output}")
    print("=" * 40)
    
    Path(args.output).mkdir(parents=True, exist_ok=True)
    
    try:
        detector = PoseDetector(
            model_variant=args.variant, model_path=args.model, engine_type=args.engine
        )
    except LiveposeError as e:
        print(f"Error: {e}")
        return
    
    view = OverlayView(OverlayRenderer(OverlayConfig(debug_mode=False)))
    
    if os.path.isdir(args.input):
        image_paths = sorted(
            path for pattern in ('*.jpg', '*.jpeg', '*.png')
            for path in glob.glob(os.path.join(args.input, pattern))
        )
    else:
        image_paths = [args.input]
    
    detected = 0
    try:
        for image_path in image_paths:
            snapshot = process_image(detector, view, image_path, args.output, args.save_results)
            if snapshot is not None and not snapshot.is_empty:
                detected += 1
    finally:
        detector.close()
    
    print(f"\nProcessed {len(image_paths)} images, pose found in {detected}")
    print(f"Performance: {detector.get_performance_stats()}")


if __name__ == '__main__':
    main()
