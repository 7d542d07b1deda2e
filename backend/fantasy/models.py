from fantasy import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone


def utcnow():
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value):
    """Parse an ISO-8601 string (or pass through a datetime) as naive UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _iso(dt):
    return dt.isoformat() if dt else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    display_name = db.Column(db.String(64), nullable=True, index=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    role = db.Column(db.String(16), nullable=False, default='user')  # user, admin
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'avatar_url': self.avatar_url,
            'role': self.role,
        }


class Match(db.Model):
    __tablename__ = 'match'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    start_time = db.Column(db.DateTime, nullable=True, index=True)
    stream_url = db.Column(db.String(512), nullable=False, default='')
    team_a = db.Column(db.String(64), nullable=False, default='')
    team_b = db.Column(db.String(64), nullable=False, default='')
    external_id = db.Column(db.String(64), nullable=False, default='')
    # Roster entries: {player_id, player_name, role, real_team, credits, status}
    players = db.Column(db.JSON, nullable=False, default=list)
    # Normalized player statistics, replaced wholesale on every submission
    stats = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    teams = db.relationship('Team', back_populates='match', lazy='dynamic')
    contests = db.relationship('Contest', back_populates='match', lazy='dynamic')

    def has_started(self, now=None):
        now = now or utcnow()
        return self.start_time is not None and now >= self.start_time

    def to_dict(self, include_stats=True):
        payload = {
            'id': self.id,
            'name': self.name,
            'start_time': _iso(self.start_time),
            'stream_url': self.stream_url,
            'team_a': self.team_a,
            'team_b': self.team_b,
            'external_id': self.external_id,
            'players': list(self.players or []),
            'created_at': _iso(self.created_at),
        }
        if include_stats:
            payload['stats'] = list(self.stats or [])
        return payload


class Team(db.Model):
    __tablename__ = 'team'
    __table_args__ = (
        db.UniqueConstraint('match_id', 'viewer_name', name='uq_team_match_viewer'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    players = db.Column(db.JSON, nullable=False, default=list)  # ordered list of 11 names
    captain = db.Column(db.String(128), nullable=False)
    vice = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(64), nullable=False, default='')
    viewer_name = db.Column(db.String(64), nullable=False)
    linked_channel = db.Column(db.String(128), nullable=False, default='')
    logo_url = db.Column(db.String(512), nullable=True)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    match = db.relationship('Match', back_populates='teams')

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'user_id': self.user_id,
            'players': list(self.players or []),
            'captain': self.captain,
            'vice': self.vice,
            'name': self.name,
            'viewer_name': self.viewer_name,
            'linked_channel': self.linked_channel,
            'logo_url': self.logo_url,
            'total_points': self.total_points,
            'created_at': _iso(self.created_at),
        }


class Contest(db.Model):
    __tablename__ = 'contest'
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    title = db.Column(db.String(128), nullable=False)
    entry_fee = db.Column(db.Float, nullable=False, default=0)
    max_entries = db.Column(db.Integer, nullable=False, default=1000)
    per_viewer_limit = db.Column(db.Integer, nullable=False, default=1)
    close_time = db.Column(db.DateTime, nullable=True)
    closed = db.Column(db.Boolean, nullable=False, default=False)
    archived = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    match = db.relationship('Match', back_populates='contests')
    entries = db.relationship('TeamEntry', back_populates='contest', lazy='dynamic')

    def is_past_deadline(self, now=None):
        """True once the contest's close time or its match's start has passed."""
        now = now or utcnow()
        if self.close_time is not None and now >= self.close_time:
            return True
        return self.match is not None and self.match.has_started(now)

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'title': self.title,
            'entry_fee': self.entry_fee,
            'max_entries': self.max_entries,
            'per_viewer_limit': self.per_viewer_limit,
            'close_time': _iso(self.close_time),
            'closed': bool(self.closed),
            'archived': bool(self.archived),
            'created_at': _iso(self.created_at),
        }


class TeamEntry(db.Model):
    __tablename__ = 'team_entry'
    __table_args__ = (
        db.UniqueConstraint('contest_id', 'team_id', name='uq_entry_contest_team'),
    )
    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey('match.id'), nullable=False, index=True)
    contest_id = db.Column(db.Integer, db.ForeignKey('contest.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    viewer_name = db.Column(db.String(64), nullable=False, index=True)
    # Lineup copied from the team at join time
    players = db.Column(db.JSON, nullable=False, default=list)
    captain = db.Column(db.String(128), nullable=True)
    vice = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    contest = db.relationship('Contest', back_populates='entries')
    team = db.relationship('Team')

    def to_dict(self):
        return {
            'id': self.id,
            'match_id': self.match_id,
            'contest_id': self.contest_id,
            'team_id': self.team_id,
            'viewer_name': self.viewer_name,
            'players': list(self.players or []),
            'captain': self.captain,
            'vice': self.vice,
            'created_at': _iso(self.created_at),
        }


class LeagueTeam(db.Model):
    __tablename__ = 'league_team'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    short_name = db.Column(db.String(16), nullable=False, default='')
    logo_url = db.Column(db.String(512), nullable=True)
    # {player_id, player_name, role}
    players = db.Column(db.JSON, nullable=False, default=list)
    season_points = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @classmethod
    def from_dict(cls, data):
        players = []
        for p in data.get('players') or []:
            name = (p.get('player_name') or p.get('playerName') or '').strip()
            if not name:
                continue
            players.append({
                'player_id': str(p.get('player_id') or p.get('playerId') or ''),
                'player_name': name,
                'role': (p.get('role') or 'BAT').upper(),
            })
        return cls(
            name=data['name'],
            short_name=data.get('short_name') or data.get('shortName') or '',
            logo_url=data.get('logo_url') or data.get('logoUrl') or data.get('logo'),
            players=players,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'short_name': self.short_name,
            'logo_url': self.logo_url,
            'players': list(self.players or []),
            'season_points': self.season_points,
        }


class SeasonStanding(db.Model):
    """Snapshot of the last season recompute; rewritten wholesale each time."""
    __tablename__ = 'season_standing'
    id = db.Column(db.Integer, primary_key=True)
    user_key = db.Column(db.String(128), unique=True, nullable=False)
    viewer_name = db.Column(db.String(64), nullable=False)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    matches_played = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'user_key': self.user_key,
            'viewer_name': self.viewer_name,
            'total_points': self.total_points,
            'matches_played': self.matches_played,
        }
