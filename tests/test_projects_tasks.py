"""
Tests for project and task endpoints.
"""

import io
from datetime import date
from decimal import Decimal

from oneflow.models import Expense, Project, Task, TaskActivityLog


class TestProjects:

    def test_manager_creates_own_project(self, client, manager, auth_headers):
        resp = client.post('/api/projects', headers=auth_headers(manager), json={
            'name': 'Mobile App',
            'budget': 5000,
            'priority': 'high',
            'tags': ['mobile', 'ios'],
            'manager_id': 12345,
        })
        assert resp.status_code == 201
        project = resp.get_json()['project']
        assert project['manager_id'] == manager.id
        assert project['status'] == 'planned'
        assert project['budget'] == 5000.0
        assert project['tags'] == ['mobile', 'ios']
        assert project['cost'] == project['revenue'] == project['profit'] == 0.0

    def test_admin_assigns_manager(self, client, admin, manager, auth_headers):
        resp = client.post('/api/projects', headers=auth_headers(admin),
                           json={'name': 'Data Platform', 'manager_id': manager.id})
        assert resp.status_code == 201
        assert resp.get_json()['project']['manager_name'] == 'Pat Manager'

    def test_admin_cannot_assign_team_member_as_manager(self, client, admin, member, auth_headers):
        resp = client.post('/api/projects', headers=auth_headers(admin),
                           json={'name': 'Data Platform', 'manager_id': member.id})
        assert resp.status_code == 400
        assert resp.get_json()['errors'][0]['field'] == 'manager_id'

    def test_multipart_create_with_image_and_tags(self, client, manager, auth_headers):
        resp = client.post('/api/projects', headers=auth_headers(manager), data={
            'name': 'Brand Refresh',
            'tags': 'design, print',
            'image': (io.BytesIO(b'GIF89a'), 'cover.gif'),
        }, content_type='multipart/form-data')
        assert resp.status_code == 201
        project = resp.get_json()['project']
        assert project['tags'] == ['design', 'print']
        assert project['image_url'].startswith('/uploads/projects/')

    def test_team_member_cannot_create(self, client, member, auth_headers):
        resp = client.post('/api/projects', headers=auth_headers(member), json={'name': 'Nope'})
        assert resp.status_code == 403

    def test_list_scoped_by_role(self, client, project, task, admin, other_manager, member, make_user,
                                 auth_headers):
        outsider = make_user('outsider@example.com')

        def names(user):
            return [p['name'] for p in client.get('/api/projects', headers=auth_headers(user)).get_json()]

        assert names(admin) == ['Website Redesign']
        assert names(other_manager) == []
        assert names(member) == ['Website Redesign']
        assert names(outsider) == []

    def test_get_denied_for_unrelated_manager(self, client, project, other_manager, auth_headers):
        resp = client.get(f'/api/projects/{project.id}', headers=auth_headers(other_manager))
        assert resp.status_code == 403

    def test_update(self, client, project, manager, auth_headers):
        resp = client.put(f'/api/projects/{project.id}', headers=auth_headers(manager),
                          json={'status': 'on_hold', 'budget': 12000})
        assert resp.status_code == 200
        data = resp.get_json()['project']
        assert data['status'] == 'on_hold'
        assert data['budget'] == 12000.0

    def test_only_admin_reassigns_manager(self, client, project, manager, other_manager, admin, auth_headers):
        resp = client.put(f'/api/projects/{project.id}', headers=auth_headers(manager),
                          json={'manager_id': other_manager.id})
        assert resp.status_code == 403

        resp = client.put(f'/api/projects/{project.id}', headers=auth_headers(admin),
                          json={'manager_id': other_manager.id})
        assert resp.status_code == 200
        assert resp.get_json()['project']['manager_id'] == other_manager.id

    def test_update_by_other_manager_denied(self, client, project, other_manager, auth_headers):
        resp = client.put(f'/api/projects/{project.id}', headers=auth_headers(other_manager),
                          json={'name': 'Hijacked'})
        assert resp.status_code == 403

    def test_rejects_invalid_status(self, client, project, manager, auth_headers):
        resp = client.put(f'/api/projects/{project.id}', headers=auth_headers(manager),
                          json={'status': 'archived'})
        assert resp.status_code == 400

    def test_delete_blocked_by_open_tasks(self, client, project, task, manager, auth_headers):
        resp = client.delete(f'/api/projects/{project.id}', headers=auth_headers(manager))
        assert resp.status_code == 400
        assert 'active tasks' in resp.get_json()['message']

    def test_delete_removes_closed_tasks(self, client, project, task, manager, auth_headers, db_session):
        task.status = 'completed'
        db_session.commit()
        project_id, task_id = project.id, task.id

        resp = client.delete(f'/api/projects/{project_id}', headers=auth_headers(manager))
        assert resp.status_code == 200
        assert db_session.get(Project, project_id) is None
        assert db_session.get(Task, task_id) is None

    def test_delete_blocked_by_financial_documents(self, client, project, manager, finance, catalog,
                                                    auth_headers, db_session):
        bill = client.post('/api/vendor-bills', headers=auth_headers(finance), json={
            'vendor_id': catalog['vendor'].id,
            'project_id': project.id,
            'lines': [{'product_id': catalog['purchase_product'].id, 'quantity': 1, 'unit': 'pcs',
                       'unit_price': 250}],
        }).get_json()
        client.post(f"/api/vendor-bills/post/{bill['id']}", headers=auth_headers(finance))

        resp = client.delete(f'/api/projects/{project.id}', headers=auth_headers(manager))
        assert resp.status_code == 400
        assert resp.get_json()['message'] == 'Project has financial documents or expenses and cannot be deleted'
        assert db_session.get(Project, project.id) is not None

        paid = client.post(f"/api/vendor-bills/mark-paid/{bill['id']}", headers=auth_headers(finance))
        assert paid.status_code == 200
        assert db_session.get(Project, project.id).cost == Decimal('250.00')

    def test_delete_blocked_by_expenses(self, client, project, manager, auth_headers, db_session):
        db_session.add(Expense(expense_number='EXP-202403-001', project_id=project.id, submitted_by=manager.id,
                               expense_date=date(2024, 3, 1),
                               category='Travel', description='Taxi', amount=Decimal('40')))
        db_session.commit()
        resp = client.delete(f'/api/projects/{project.id}', headers=auth_headers(manager))
        assert resp.status_code == 400

    def test_project_tasks(self, client, project, task, member, auth_headers):
        resp = client.get(f'/api/projects/{project.id}/tasks', headers=auth_headers(member))
        assert resp.status_code == 200
        assert [t['task_id'] for t in resp.get_json()] == ['TASK-00001']


class TestTasks:

    def test_create_numbers_and_logs(self, client, project, task, manager, member, auth_headers, db_session):
        resp = client.post('/api/tasks', headers=auth_headers(manager), json={
            'title': 'Write copy',
            'project_id': project.id,
            'priority': 'low',
            'assigned_to': member.id,
            'hourly_rate': 75,
        })
        assert resp.status_code == 201
        created = resp.get_json()['task']
        assert created['task_id'] == 'TASK-00002'
        assert created['status'] == 'pending'
        assert created['hourly_rate'] == 75.0

        logs = TaskActivityLog.query.filter_by(task_id=created['id']).all()
        assert [log.action for log in logs] == ['Task Created']

    def test_create_requires_project_and_priority(self, client, manager, auth_headers, db_session):
        resp = client.post('/api/tasks', headers=auth_headers(manager), json={'title': 'Orphan'})
        assert resp.status_code == 400
        fields = {e['field'] for e in resp.get_json()['errors']}
        assert fields == {'project_id', 'priority'}

    def test_create_on_unmanaged_project(self, client, project, other_manager, auth_headers):
        resp = client.post('/api/tasks', headers=auth_headers(other_manager),
                           json={'title': 'Sneaky', 'project_id': project.id, 'priority': 'low'})
        assert resp.status_code == 403

    def test_list_scoped_to_assignee(self, client, task, member, make_user, auth_headers):
        other = make_user('other@example.com')
        assert len(client.get('/api/tasks', headers=auth_headers(member)).get_json()) == 1
        assert client.get('/api/tasks', headers=auth_headers(other)).get_json() == []

    def test_board_filters(self, client, project, task, manager, auth_headers):
        headers = auth_headers(manager)
        found = client.get(f'/api/tasks/project/{project.id}?search=landing', headers=headers).get_json()
        assert [t['task_id'] for t in found] == ['TASK-00001']
        assert found[0]['assignee_email'] == 'member@example.com'
        assert found[0]['total_hours'] == 0.0

        empty = client.get(f'/api/tasks/project/{project.id}?status=completed', headers=headers).get_json()
        assert empty == []

    def test_assignee_changes_status(self, client, task, member, auth_headers, db_session):
        resp = client.patch(f'/api/tasks/{task.id}/status', headers=auth_headers(member),
                            json={'status': 'in_progress'})
        assert resp.status_code == 200
        assert resp.get_json()['task']['status'] == 'in_progress'
        log = TaskActivityLog.query.filter_by(task_id=task.id, action='Status Changed').one()
        assert log.details == 'Status changed from pending to in_progress'

    def test_stranger_cannot_change_status(self, client, task, make_user, auth_headers):
        other = make_user('other@example.com')
        resp = client.patch(f'/api/tasks/{task.id}/status', headers=auth_headers(other),
                            json={'status': 'completed'})
        assert resp.status_code == 403

    def test_update_records_changed_fields(self, client, task, manager, auth_headers):
        resp = client.put(f'/api/tasks/{task.id}', headers=auth_headers(manager),
                          json={'title': 'Build landing page v2', 'priority': 'medium'})
        assert resp.status_code == 200
        log = TaskActivityLog.query.filter_by(task_id=task.id, action='Task Updated').one()
        assert log.details == 'Updated: title'

    def test_time_logs_accumulate(self, client, task, member, auth_headers, db_session):
        headers = auth_headers(member)
        client.post(f'/api/tasks/{task.id}/time-logs', headers=headers, json={'hours': 2.5, 'date': '2024-03-01'})
        resp = client.post(f'/api/tasks/{task.id}/time-logs', headers=headers, json={'hours': 1.25})
        assert resp.status_code == 201
        assert resp.get_json()['hours_logged'] == 3.75
        assert db_session.get(Task, task.id).hours_logged == Decimal('3.75')

    def test_time_log_requires_positive_hours(self, client, task, member, auth_headers):
        resp = client.post(f'/api/tasks/{task.id}/time-logs', headers=auth_headers(member), json={'hours': 0})
        assert resp.status_code == 400

    def test_comments_and_subtasks(self, client, task, member, auth_headers):
        headers = auth_headers(member)
        resp = client.post(f'/api/tasks/{task.id}/comments', headers=headers, json={'comment': 'On it'})
        assert resp.status_code == 201
        assert resp.get_json()['comment']['user_name'] == 'Tess Member'

        resp = client.post(f'/api/tasks/{task.id}/subtasks', headers=headers, json={'title': 'Hero section'})
        subtask_id = resp.get_json()['subtask']['id']
        toggled = client.patch(f'/api/tasks/subtasks/{subtask_id}', headers=headers, json={})
        assert toggled.get_json()['subtask']['is_completed'] is True
        reset = client.patch(f'/api/tasks/subtasks/{subtask_id}', headers=headers, json={'is_completed': 'false'})
        assert reset.get_json()['subtask']['is_completed'] is False

        detail = client.get(f'/api/tasks/{task.id}', headers=headers).get_json()
        assert detail['comment_count'] == 1
        assert detail['subtask_count'] == 1
        assert detail['activity_logs'][0]['action'] == 'Subtask Updated'

    def test_attachment_upload(self, client, task, member, auth_headers):
        resp = client.post(f'/api/tasks/{task.id}/attachments', headers=auth_headers(member), data={
            'file': (io.BytesIO(b'a,b\n1,2\n'), 'numbers.csv'),
        }, content_type='multipart/form-data')
        assert resp.status_code == 201
        attachment = resp.get_json()['attachment']
        assert attachment['filename'] == 'numbers.csv'
        assert attachment['file_size'] == 8

    def test_attachment_rejects_executables(self, client, task, member, auth_headers):
        resp = client.post(f'/api/tasks/{task.id}/attachments', headers=auth_headers(member), data={
            'file': (io.BytesIO(b'MZ'), 'setup.exe'),
        }, content_type='multipart/form-data')
        assert resp.status_code == 400

    def test_tasks_for_invoice(self, client, project, task, finance, auth_headers, db_session):
        headers = auth_headers(finance)
        assert client.get('/api/tasks/for-invoice', headers=headers).get_json() == []
        task.status = 'completed'
        db_session.commit()
        assert [t['id'] for t in client.get('/api/tasks/for-invoice', headers=headers).get_json()] == [task.id]
