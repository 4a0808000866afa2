#!/usr/bin/env python3
"""
AVision Diff API Server
Load a reference and a test image, compare them, re-run on threshold changes.
"""

import os
import logging
import uuid
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from services.image_service import ImageService
from services.difference_service import DifferenceService
from pipeline.compare_images import compare, DEFAULT_THRESHOLD
from models.image import Image
from models.comparison_result import ComparisonResult
from models.exceptions import InvalidImageError, DimensionMismatchError

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "data/temp_uploads")
RESULTS_FOLDER = os.getenv("RESULTS_FOLDER", "data/api_results")
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,bmp").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024
PNG_COMPRESSION = int(os.getenv("PNG_COMPRESSION", "6"))

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Ensure directories exist
Path(UPLOAD_FOLDER).mkdir(parents=True, exist_ok=True)
Path(RESULTS_FOLDER).mkdir(parents=True, exist_ok=True)

# Initialize services
image_service = ImageService()

logger = logging.getLogger(__name__)

# Session storage for comparison state
sessions: Dict[str, "ComparisonSession"] = {}


class ComparisonSession:
    """Holds the images one user has loaded and their latest comparison."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.reference_image: Optional[Image] = None
        self.test_image: Optional[Image] = None
        self.result: Optional[ComparisonResult] = None
        self.threshold: int = DEFAULT_THRESHOLD

    @property
    def ready(self) -> bool:
        return self.reference_image is not None and self.test_image is not None

    def clear(self):
        """Drop all images from memory."""
        self.reference_image = None
        self.test_image = None
        self.result = None


def get_or_create_session(session_id: str = None) -> ComparisonSession:
    """Get existing session or create new one."""
    if session_id is None:
        session_id = str(uuid.uuid4())

    if session_id not in sessions:
        sessions[session_id] = ComparisonSession(session_id)

    return sessions[session_id]


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def load_upload(field: str, prefix: str, session: ComparisonSession) -> Image:
    """Save the uploaded file under *field* and decode it. Temp file is removed afterwards."""
    file = request.files[field]
    if file.filename == '' or not allowed_file(file.filename):
        raise InvalidImageError(f"Unsupported or missing file for {field}")

    filename = secure_filename(file.filename)
    temp_path = Path(UPLOAD_FOLDER) / f"{prefix}_{session.session_id}_{uuid.uuid4().hex}_{filename}"
    file.save(str(temp_path))
    try:
        image = image_service.load(str(temp_path))
    finally:
        if temp_path.exists():
            temp_path.unlink()
    # keep the user-facing name, not the temp one
    image.path = Path(filename)
    return image


def save_image_for_serving(image: Image, filename: str) -> str:
    """Save image to results folder and return URL path."""
    results_path = Path(RESULTS_FOLDER) / filename
    results_path.write_bytes(image_service.to_png_bytes(image, PNG_COMPRESSION))
    return f"/api/image/{filename}"


def parse_threshold(payload: dict, default: int) -> int:
    """Form-style strings are parsed; JSON numbers go to the core check as-is."""
    raw = payload.get('threshold', default)
    if isinstance(raw, str):
        try:
            raw = int(raw.strip())
        except ValueError:
            raise ValueError(f"Threshold must be an integer, got {raw!r}")
    return DifferenceService.validate_threshold(raw)


def overlay_path(session_id: str) -> Path:
    """One overlay file per session, overwritten on every re-run."""
    return Path(RESULTS_FOLDER) / secure_filename(f"diff_{session_id}.png")


def run_comparison(session: ComparisonSession) -> dict:
    """Compare the session's images at its current threshold and package the response."""
    session.result = compare(session.reference_image, session.test_image, session.threshold)
    overlay_url = save_image_for_serving(session.result.overlay, overlay_path(session.session_id).name)
    # cache-buster, the file name itself is stable
    overlay_url = f"{overlay_url}?v={uuid.uuid4().hex[:8]}"
    stats = session.result.stats
    logger.info(f"Session {session.session_id}: {stats.summary()}")
    return {
        'success': True,
        'session_id': session.session_id,
        'threshold': session.result.threshold,
        'stats': stats.to_dict(),
        'overlay': image_service.to_base64(session.result.overlay, PNG_COMPRESSION),
        'overlay_url': overlay_url,
        'message': stats.summary(),
    }


@app.route('/api/load-reference', methods=['POST'])
def load_reference():
    """Load the reference image into a session."""
    try:
        if 'reference_image' not in request.files:
            return jsonify({'success': False, 'message': 'No reference image provided'}), 400

        session = get_or_create_session(request.form.get('session_id'))
        session.reference_image = load_upload('reference_image', 'ref', session)
        session.result = None

        info = image_service.describe(session.reference_image)
        logger.info(f"Reference image loaded for session {session.session_id}: {info}")
        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'info': info,
            'message': 'Image loaded'
        })

    except InvalidImageError as e:
        logger.warning(f"Reference image rejected: {e}")
        return jsonify({'success': False, 'message': f'Error loading image: {e}'}), 400
    except Exception as e:
        logger.error(f"Reference loading error: {e}")
        return jsonify({'success': False, 'message': f'Error loading image: {str(e)}'}), 500


@app.route('/api/load-test', methods=['POST'])
def load_test():
    """Load the test image into a session and drop the previous overlay."""
    try:
        if 'test_image' not in request.files:
            return jsonify({'success': False, 'message': 'No test image provided'}), 400

        session = get_or_create_session(request.form.get('session_id'))
        session.test_image = load_upload('test_image', 'test', session)
        session.result = None

        info = image_service.describe(session.test_image)
        logger.info(f"Test image loaded for session {session.session_id}: {info}")
        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'info': info,
            'message': 'Image loaded'
        })

    except InvalidImageError as e:
        logger.warning(f"Test image rejected: {e}")
        return jsonify({'success': False, 'message': f'Error loading image: {e}'}), 400
    except Exception as e:
        logger.error(f"Test loading error: {e}")
        return jsonify({'success': False, 'message': f'Error loading image: {str(e)}'}), 500


@app.route('/api/compare', methods=['POST'])
def compare_step():
    """Compare the loaded reference and test images."""
    try:
        payload = request.get_json(silent=True) or {}
        session_id = payload.get('session_id')
        if not session_id or session_id not in sessions:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        session = sessions[session_id]
        if not session.ready:
            return jsonify({'success': False, 'message': 'Load both images first'}), 400

        session.threshold = parse_threshold(payload, session.threshold)
        return jsonify(run_comparison(session))

    except (InvalidImageError, ValueError) as e:
        logger.warning(f"Comparison rejected: {e}")
        return jsonify({'success': False, 'message': f'Error in comparison: {e}'}), 400
    except DimensionMismatchError as e:
        logger.error(f"Comparison invariant violated: {e}")
        return jsonify({'success': False, 'message': f'Error in comparison: {e}'}), 500
    except Exception as e:
        logger.error(f"Comparison error: {e}")
        return jsonify({'success': False, 'message': f'Error in comparison: {str(e)}'}), 500


@app.route('/api/threshold', methods=['POST'])
def update_threshold():
    """Record a new threshold; re-run the comparison if one is already displayed."""
    try:
        payload = request.get_json(silent=True) or {}
        session_id = payload.get('session_id')
        if not session_id or session_id not in sessions:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        session = sessions[session_id]
        if 'threshold' not in payload:
            return jsonify({'success': False, 'message': 'No threshold provided'}), 400
        session.threshold = parse_threshold(payload, session.threshold)

        if session.ready and session.result is not None:
            return jsonify(run_comparison(session))

        return jsonify({
            'success': True,
            'session_id': session_id,
            'threshold': session.threshold,
            'message': 'Threshold updated'
        })

    except (InvalidImageError, ValueError) as e:
        logger.warning(f"Threshold update rejected: {e}")
        return jsonify({'success': False, 'message': f'Error updating threshold: {e}'}), 400
    except Exception as e:
        logger.error(f"Threshold update error: {e}")
        return jsonify({'success': False, 'message': f'Error updating threshold: {str(e)}'}), 500


@app.route('/api/image/<filename>')
def serve_image(filename):
    """Serve rendered overlays."""
    try:
        image_path = Path(RESULTS_FOLDER) / secure_filename(filename)
        if image_path.exists():
            return send_file(image_path.resolve(), mimetype='image/png')
        else:
            return jsonify({'error': 'Image not found'}), 404
    except Exception as e:
        logger.error(f"Error serving image {filename}: {e}")
        return jsonify({'error': 'Error serving image'}), 500


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'AVision Diff API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    try:
        payload = request.get_json(silent=True) or {}
        session_id = payload.get('session_id')
        if session_id and session_id in sessions:
            sessions[session_id].clear()
            del sessions[session_id]
            overlay_path(session_id).unlink(missing_ok=True)
            return jsonify({'success': True, 'message': 'Session cleared'})
        else:
            return jsonify({'success': False, 'message': 'Session not found'})
    except Exception as e:
        logger.error(f"Error clearing session: {e}")
        return jsonify({'success': False, 'message': 'Error clearing session'}), 500


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    logger.info("Starting AVision Diff API Server...")
    logger.info(f"Upload directory: {UPLOAD_FOLDER}")
    logger.info(f"Results directory: {RESULTS_FOLDER}")
    logger.info(f"Max upload size: {MAX_CONTENT_LENGTH // (1024 * 1024)}MB")
    logger.info(f"Default threshold: {DEFAULT_THRESHOLD}")
    app.run(
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "5000")),
        debug=False,
    )


if __name__ == '__main__':
    main()
