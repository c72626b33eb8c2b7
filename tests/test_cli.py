import json

import pytest

import main


@pytest.fixture
def data_files(tmp_path):
    scores = tmp_path / 'scores.json'
    scores.write_text(json.dumps([
        {'chart_id': 'c1', 'song_id': 's1', 'difficulty': 'EXPERT', 'level': 15,
         'score': 995000, 'lamp': 'pfc', 'grade': 'AAA', 'title': 'First'},
        {'chart_id': 'c2', 'song_id': 's2', 'difficulty': 'EXPERT', 'level': 15,
         'score': 940000, 'lamp': 'fc', 'grade': 'AA', 'title': 'Second'},
    ]), encoding='utf-8')
    catalog = tmp_path / 'catalog.json'
    catalog.write_text(json.dumps([
        {'chart_id': f'c{i}', 'song_id': f's{i}', 'difficulty': 'EXPERT', 'level': 15, 'title': f'Chart {i}'}
        for i in range(1, 4)
    ]), encoding='utf-8')
    goal = tmp_path / 'goal.json'
    goal.write_text(json.dumps({
        'id': 'g1', 'name': 'Lv15 PFCs', 'target_type': 'lamp', 'target_value': 'pfc',
        'criteria_rules': [{'type': 'level', 'operator': 'is', 'value': [15]}],
    }), encoding='utf-8')
    rules = tmp_path / 'rules.json'
    rules.write_text(json.dumps([{'type': 'title', 'operator': 'contains', 'value': 'sec'}]), encoding='utf-8')
    return {'scores': str(scores), 'catalog': str(catalog), 'goal': str(goal), 'rules': str(rules)}


class TestCli:
    def test_goal_command(self, data_files, capsys):
        code = main.main(['goal', '--scores', data_files['scores'], '--catalog', data_files['catalog'],
                          '--goal', data_files['goal']])
        out = capsys.readouterr().out
        assert code == 0
        assert 'GOAL: Lv15 PFCs' in out
        assert 'Progress: 1 / 3' in out
        assert '1 step from PFC' not in out
        assert '2 steps from PFC' in out

    def test_profile_command(self, data_files, capsys):
        code = main.main(['profile', '--scores', data_files['scores']])
        out = capsys.readouterr().out
        assert code == 0
        assert 'PLAYER MASTERY PROFILE' in out
        assert 'Coaching Insights:' in out

    def test_profile_context(self, data_files, capsys):
        main.main(['profile', '--scores', data_files['scores'], '--context'])
        assert capsys.readouterr().out.startswith('PLAYER PROFILE')

    def test_filter_command(self, data_files, capsys):
        code = main.main(['filter', '--rules', data_files['rules'], '--scores', data_files['scores']])
        out = capsys.readouterr().out
        assert code == 0
        assert 'FILTER: Title Contains sec' in out
        assert 'Matches: 1 of 2' in out

    def test_invalid_goal_file_returns_error(self, data_files, tmp_path, capsys):
        bad = tmp_path / 'bad_goal.json'
        bad.write_text(json.dumps({'target_type': 'nope', 'target_value': 1}), encoding='utf-8')
        code = main.main(['goal', '--scores', data_files['scores'], '--goal', str(bad)])
        assert code == 1
        assert 'ERROR:' in capsys.readouterr().out

    def test_missing_file_returns_error(self, capsys):
        code = main.main(['profile', '--scores', 'does/not/exist.json'])
        assert code == 1
