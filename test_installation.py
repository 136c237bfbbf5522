"""
Script to verify installation and identify issues.
"""

import argparse


def test_imports():
    """Test all required imports."""
    print("Testing imports...")
    
    try:
        import cv2
        print("✓ OpenCV imported successfully")
        print(f"  OpenCV version: {cv2.__version__}")
    except ImportError as e:
        print(f"✗ OpenCV import failed: {e}")
        return False
    
    try:
        import numpy as np
        print("✓ NumPy imported successfully")
        print(f"  NumPy version: {np.__version__}")
    except ImportError as e:
        print(f"✗ NumPy import failed: {e}")
        return False
    
    try:
        import onnxruntime as ort
        print("✓ ONNX Runtime imported successfully")
        print(f"  ONNX Runtime version: {ort.__version__}")
        print(f"  Providers: {ort.get_available_providers()}")
    except ImportError as e:
        print(f"✗ ONNX Runtime import failed: {e}")
        return False
    
    try:
        import torch
        print("✓ PyTorch imported successfully")
        print(f"  PyTorch version: {torch.__version__}")
    except ImportError as e:
        print(f"⚠ PyTorch not available, TorchScript models will not load: {e}")
    
    return True


def test_model(model_path, variant, engine):
    """Check that a model file loads and matches its variant."""
    print(f"\nTesting model {model_path} ({variant})...")
    
    from livepose.errors import LiveposeError
    from livepose.inference import PoseDetector
    from livepose.data import create_sample_image
    
    try:
        detector = PoseDetector(model_variant=variant, model_path=model_path, engine_type=engine)
    except LiveposeError as e:
        print(f"✗ Model check failed: {e}")
        return False
    
    try:
        snapshot = detector.detect_image(create_sample_image())
        print(f"✓ Model runs, {len(snapshot.keypoints)} keypoints on the test image")
    finally:
        detector.close()
    
    return True


def test_camera():
    """Test camera access."""
    print("\nTesting camera access...")
    
    from livepose.inference import VideoCaptureSource
    
    source = VideoCaptureSource(0)
    if not source.open():
        print("✗ Camera not accessible")
        return False
    
    try:
        frame = source.read()
        if frame is None:
            print("✗ Camera cannot capture frames")
            return False
        print(f"✓ Camera can capture frames: {frame.width}x{frame.height}")
        frame.release()
        return True
    finally:
        source.close()


def main():
    """Run all checks."""
    parser = argparse.ArgumentParser(description='Installation check')
    parser.add_argument('--model', type=str, default=None, help='Model file to check')
    parser.add_argument('--variant', type=str, default='movenet_lightning', help='Model variant')
    parser.add_argument('--engine', type=str, default='onnx', choices=['onnx', 'torch'])
    args = parser.parse_args()
    
    print("=" * 50)
    print("LIVE POSE ESTIMATION - INSTALLATION TEST")
    print("=" * 50)
    
    if not test_imports():
        print("\n✗ Import issues found. Please install missing packages:")
        print("pip install -e .")
        return
    
    model_ok = test_model(args.model, args.variant, args.engine) if args.model else None
    camera_ok = test_camera()
    
    print("\n" + "=" * 50)
    print("TEST SUMMARY")
    print("=" * 50)
    
    if model_ok is None:
        print("⚠ No model given, pass --model to check a model file")
    elif model_ok:
        print("✓ Model loads and matches its variant")
    else:
        print("✗ Model issues found. Please check the error messages above.")
    
    if camera_ok:
        print("✓ Camera is available - real-time demo should work")
    else:
        print("⚠ Camera not available - only the --test-image mode will work")


if __name__ == '__main__':
    main()
