#!/usr/bin/env python3
"""
Clothing Mask Pipeline API Server
Uploads, spreadsheet browsing, the streamed spreadsheet pipeline and
single-image mask endpoints for the web UI.
"""

import os
import json
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, Response, current_app, request, jsonify, send_file, stream_with_context
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from models.errors import InputNotFoundError, SpreadsheetError
from models.pipeline_item import PipelineConfig
from pipeline.clothing_pipeline import run_pipeline
from pipeline.mask_extractor import MASK_MODES
from services.background_service import BackgroundService
from services.chroma_key_service import ChromaKeyService
from services.file_service import FileService
from services.image_service import ImageService
from services.mask_service import MaskService
from services.segmentation_service import SegmentationService
from services.spreadsheet_service import SpreadsheetService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "data/uploads")
OUTPUT_FOLDER = os.getenv("OUTPUT_FOLDER", "data/output")
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,webp,gif,bmp,xlsx,xls").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024
DEFAULT_MASK_MODE = os.getenv("MASK_MODE", "code")

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['OUTPUT_FOLDER'] = OUTPUT_FOLDER
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
spreadsheet_service = SpreadsheetService()
segmentation_service = SegmentationService()
mask_service = MaskService()
background_service = BackgroundService()
chroma_service = ChromaKeyService()
image_service = ImageService()

logger = logging.getLogger(__name__)


def get_file_service() -> FileService:
    """File service bound to the folders currently configured on the app."""
    return FileService(current_app.config['UPLOAD_FOLDER'], current_app.config['OUTPUT_FOLDER'])


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def is_spreadsheet(filename: str) -> bool:
    return filename.lower().endswith(('.xlsx', '.xls'))


def sse(event: dict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def json_image(field: str = 'image') -> str:
    """
    Image from the JSON body as a data URI (data URI or file path accepted).
    Paths must point at an image inside the upload or output folder.
    """
    body = request.get_json(silent=True) or {}
    ref = body.get(field)
    if not ref or not isinstance(ref, str):
        raise ValueError(f"No {field} provided")
    data_uri = get_file_service().resolve_input(ref)
    if not ref.startswith('data:'):
        # a path must hold a decodable image, ImageDecodeError otherwise
        image_service.decode_data_uri(data_uri)
    return data_uri


def json_number(field: str, cast=float):
    """Optional numeric field of the JSON body; None when absent."""
    body = request.get_json(silent=True) or {}
    value = body.get(field)
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number, got {value!r}")


# ─── Uploads & spreadsheets ────────────────────────────────────────

@app.route('/api/upload', methods=['POST'])
def upload_file():
    """Store an uploaded file; spreadsheets also return their sheet info."""
    try:
        if 'file' not in request.files:
            return jsonify({'success': False, 'message': 'No file provided'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'success': False, 'message': 'No file selected'}), 400
        if not allowed_file(file.filename):
            return jsonify({'success': False, 'message': f'File type not allowed: {file.filename}'}), 400

        kind = request.form.get('type')
        filename = secure_filename(file.filename)
        path = get_file_service().save_upload(file.read(), filename, kind)
        logger.info(f"Uploaded {filename} ({kind or 'file'}) → {path}")

        response = {'success': True, 'filePath': str(path)}
        if kind == 'excel' and is_spreadsheet(filename):
            response['sheets'] = [info.to_dict() for info in spreadsheet_service.get_sheet_info(path)]
        return jsonify(response)

    except SpreadsheetError as e:
        logger.error(f"Spreadsheet upload error: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Upload error: {e}")
        return jsonify({'success': False, 'message': f'Upload failed: {str(e)}'}), 500


@app.route('/api/sheets', methods=['POST'])
def read_sheet():
    """Read one prompt column (and optional name column) of a sheet."""
    try:
        body = request.get_json(silent=True) or {}
        file_path = body.get('filePath')
        sheet_name = body.get('sheetName')
        prompt_column = body.get('promptColumn')
        if not file_path or not sheet_name or not prompt_column:
            return jsonify({'success': False,
                            'message': 'Missing required fields: filePath, sheetName, promptColumn'}), 400

        file_path = get_file_service().local_path(file_path)
        items = spreadsheet_service.read_column_data(file_path, sheet_name, prompt_column, body.get('nameColumn'))
        return jsonify({
            'success': True,
            'data': [{'name': item.name, 'prompt': item.prompt, 'rowIndex': item.row_index} for item in items],
            'count': len(items)
        })

    except SpreadsheetError as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403
    except Exception as e:
        logger.error(f"Sheet read error: {e}")
        return jsonify({'success': False, 'message': f'Failed to read sheet data: {str(e)}'}), 500


# ─── Pipeline ──────────────────────────────────────────────────────

@app.route('/api/process', methods=['POST'])
def process():
    """Run the spreadsheet pipeline, streaming progress as Server-Sent Events."""
    body = request.get_json(silent=True) or {}
    if not body.get('excelPath') or not body.get('step1Sheet') or not body.get('step1PromptCol'):
        return jsonify({'success': False,
                        'message': 'Missing required fields: excelPath, step1Sheet, step1PromptCol'}), 400

    body.setdefault('maskMode', DEFAULT_MASK_MODE)
    if body['maskMode'] not in MASK_MODES:
        return jsonify({'success': False, 'message': f"Unknown mask mode: {body['maskMode']}"}), 400

    file_service = get_file_service()
    try:
        file_service.local_path(body['excelPath'])
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403

    config = PipelineConfig.from_request(body)
    logger.info(f"Starting pipeline for {config.excel_path} (mask mode: {config.mask_mode})")

    def generate():
        for event in run_pipeline(config,
                                  spreadsheet_service=spreadsheet_service,
                                  file_service=file_service,
                                  segmentation_service=segmentation_service,
                                  mask_service=mask_service,
                                  chroma_service=chroma_service):
            yield sse(event)

    return Response(stream_with_context(generate()), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache', 'Connection': 'keep-alive'})


# ─── Single-image operations ───────────────────────────────────────

@app.route('/api/mask/build', methods=['POST'])
def build_mask():
    """Code-based clothing mask of a dressed mannequin image."""
    try:
        image = json_image()
        mask = segmentation_service.build_mask_data_uri(image)
        return jsonify({'success': True, 'mask': mask})

    except (ValueError, InputNotFoundError) as e:
        # ImageDecodeError is a ValueError
        return jsonify({'success': False, 'message': str(e)}), 400
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403
    except Exception as e:
        logger.error(f"Mask build error: {e}")
        return jsonify({'success': False, 'message': f'Error building mask: {str(e)}'}), 500


@app.route('/api/mask/apply', methods=['POST'])
def apply_mask():
    """Apply a mask to an image; a mask that cannot be applied returns the original."""
    try:
        image = json_image('image')
        mask = json_image('mask')
        result = mask_service.apply_mask_data_uri(image, mask,
                                                  threshold=json_number('threshold', int),
                                                  feather_radius=json_number('featherRadius'))
        return jsonify({'success': True, 'image': result.image,
                        'degraded': result.degraded, 'reason': result.reason})

    except (ValueError, InputNotFoundError) as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403
    except Exception as e:
        logger.error(f"Mask apply error: {e}")
        return jsonify({'success': False, 'message': f'Error applying mask: {str(e)}'}), 500


@app.route('/api/remove-background', methods=['POST'])
def remove_background():
    """Make the light studio background transparent."""
    try:
        image = json_image()
        result = background_service.remove_light_background_data_uri(image, json_number('threshold', int))
        return jsonify({'success': True, 'image': result.image,
                        'degraded': result.degraded, 'reason': result.reason})

    except (ValueError, InputNotFoundError) as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403
    except Exception as e:
        logger.error(f"Background removal error: {e}")
        return jsonify({'success': False, 'message': f'Error removing background: {str(e)}'}), 500


@app.route('/api/remove-green', methods=['POST'])
def remove_green():
    """Key out a green screen."""
    try:
        image = json_image()
        result = chroma_service.remove_green_screen_data_uri(image, json_number('tolerance'))
        return jsonify({'success': True, 'image': result.image,
                        'degraded': result.degraded, 'reason': result.reason})

    except (ValueError, InputNotFoundError) as e:
        return jsonify({'success': False, 'message': str(e)}), 400
    except PermissionError as e:
        return jsonify({'success': False, 'message': str(e)}), 403
    except Exception as e:
        logger.error(f"Green screen removal error: {e}")
        return jsonify({'success': False, 'message': f'Error removing green screen: {str(e)}'}), 500


# ─── Output files ──────────────────────────────────────────────────

@app.route('/api/files', methods=['GET'])
def list_files():
    """Tree of everything under the output folder."""
    try:
        listing = get_file_service().file_tree()
        return jsonify({'success': True, 'basePath': current_app.config['OUTPUT_FOLDER'], **listing})
    except Exception as e:
        logger.error(f"File listing error: {e}")
        return jsonify({'success': False, 'message': str(e)}), 500


@app.route('/api/files', methods=['DELETE'])
def delete_file():
    """Delete a file or folder below the output folder."""
    relative = request.args.get('path')
    if not relative:
        return jsonify({'success': False, 'message': 'No path provided'}), 400
    try:
        get_file_service().delete(relative)
        logger.info(f"Deleted {relative}")
        return jsonify({'success': True, 'message': 'Deleted successfully'})
    except PermissionError:
        return jsonify({'success': False, 'message': 'Access denied'}), 403
    except FileNotFoundError:
        return jsonify({'success': False, 'message': 'File not found'}), 404
    except Exception as e:
        logger.error(f"Delete error: {e}")
        return jsonify({'success': False, 'message': str(e)}), 500


@app.route('/api/files/download', methods=['GET'])
def download_file():
    """Serve a file from the output folder."""
    relative = request.args.get('path')
    if not relative:
        return jsonify({'error': 'No path provided'}), 400
    try:
        path = get_file_service().output_path(relative)
        if not path.is_file():
            return jsonify({'error': 'File not found'}), 404
        return send_file(path, download_name=path.name)
    except PermissionError:
        return jsonify({'error': 'Access denied'}), 403
    except Exception as e:
        logger.error(f"Error serving file {relative}: {e}")
        return jsonify({'error': 'Error serving file'}), 500


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Clothing Mask Pipeline API is running',
        'mask_modes': list(MASK_MODES)
    })


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    limit = current_app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
    return jsonify({'error': f'File too large. Maximum size is {limit}MB.'}), 413


@app.errorhandler(400)
def bad_request(e):
    """Handle bad request error."""
    return jsonify({'error': 'Bad request'}), 400


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    Path(UPLOAD_FOLDER).mkdir(parents=True, exist_ok=True)
    Path(OUTPUT_FOLDER).mkdir(parents=True, exist_ok=True)

    port = int(os.getenv("API_PORT", "5000"))
    print("🚀 Starting Clothing Mask Pipeline API Server...")
    print(f"📁 Upload directory: {UPLOAD_FOLDER}")
    print(f"📁 Output directory: {OUTPUT_FOLDER}")
    print(f"🔧 Max upload size: {MAX_CONTENT_LENGTH // (1024*1024)}MB")
    print(f"🎭 Default mask mode: {DEFAULT_MASK_MODE}")
    print("="*60)

    app.run(host='0.0.0.0', port=port, debug=False, threaded=True)


if __name__ == '__main__':
    main()
