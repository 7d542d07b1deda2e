"""Scorecard provider and screenshot OCR clients."""

from typing import Any, Dict, List

import requests
from flask import current_app

from fantasy.errors import ProviderError, ValidationError
from fantasy.models import Match


def fetch_scorecard(match: Match, provider: str = 'example') -> Dict[str, Any]:
    if provider != 'example':
        raise ValidationError(f'Unknown provider: {provider}')
    cfg = current_app.config
    api_key = cfg.get('SCORE_API_KEY')
    if not api_key:
        raise ProviderError('No SCORE_API_KEY configured')
    external_id = match.external_id or match.id
    url = f"{cfg.get('SCORE_API_URL', '').rstrip('/')}/match/{external_id}/scorecard"
    try:
        resp = requests.get(url, params={'api_key': api_key}, timeout=cfg.get('PROVIDER_TIMEOUT_SEC', 15))
        resp.raise_for_status()
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.error(f"[scorecard] match={match.id} fetch failed: {e}")
        raise ProviderError(f'Scorecard fetch failed: {e}')


def _blank_line(name: str) -> Dict[str, Any]:
    return {'player_name': name, 'runs': 0, 'fours': 0, 'sixes': 0,
            'wickets': 0, 'maidens': 0, 'catches': 0, 'mvp': False}


def normalize_scorecard(provider: str, raw: Any) -> List[Dict[str, Any]]:
    """Flatten a provider scorecard into one statistic row per player.

    ``example`` format: ``innings[]`` with ``batting``, ``bowling`` and
    ``fielding`` lists keyed by ``player``, plus ``mvpPlayer`` or
    ``topPerformers.manOfTheMatch``.
    """
    if provider != 'example':
        raise ValidationError(f'Unknown provider normalization: {provider}')
    if not isinstance(raw, dict):
        raise ValidationError('Scorecard must be a JSON object')

    lines: Dict[str, Dict[str, Any]] = {}

    def line_for(item):
        name = str((item or {}).get('player') or '').strip()
        if not name:
            return None
        return lines.setdefault(name, _blank_line(name))

    for inning in raw.get('innings') or []:
        for b in inning.get('batting') or []:
            line = line_for(b)
            if line is not None:
                line['runs'] = b.get('runs') or 0
                line['fours'] = b.get('fours') or 0
                line['sixes'] = b.get('sixes') or 0
        for b in inning.get('bowling') or []:
            line = line_for(b)
            if line is not None:
                line['wickets'] = b.get('wickets') or 0
                line['maidens'] = b.get('maidens') or 0
        for f in inning.get('fielding') or []:
            line = line_for(f)
            if line is not None:
                line['catches'] = f.get('catches') or 0

    mvp = raw.get('mvpPlayer') or (raw.get('topPerformers') or {}).get('manOfTheMatch')
    if mvp:
        mvp = str(mvp).strip()
        lines.setdefault(mvp, _blank_line(mvp))['mvp'] = True
    return list(lines.values())


def ocr_image(path: str) -> str:
    """Text OCR.space reads from a screenshot; empty when OCR is unavailable."""
    cfg = current_app.config
    api_key = cfg.get('OCR_SPACE_API_KEY')
    if not api_key:
        return ''
    try:
        with open(path, 'rb') as fh:
            resp = requests.post(
                cfg.get('OCR_SPACE_URL'),
                data={'apikey': api_key, 'language': 'eng', 'OCREngine': '2'},
                files={'file': fh},
                timeout=60,
            )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        current_app.logger.warning(f"[ocr] request failed: {e}")
        return ''
    if data.get('IsErroredOnProcessing'):
        current_app.logger.warning(f"[ocr] processing error: {data.get('ErrorMessage') or data.get('ErrorDetails')}")
        return ''
    return '\n\n'.join(p.get('ParsedText') or '' for p in data.get('ParsedResults') or [])
