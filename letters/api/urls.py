from django.urls import path

from . import views

urlpatterns = [
    path('letters/', views.letter_list, name='letter_list'),
    path('letters/generate/', views.letter_generate, name='letter_generate'),
    path('letters/drafts/', views.letter_create_draft, name='letter_create_draft'),
    path('letters/<int:letter_id>/', views.letter_detail, name='letter_detail'),
    path('letters/<int:letter_id>/submit/', views.letter_submit, name='letter_submit'),
    path('letters/<int:letter_id>/send-email/', views.letter_send_email, name='letter_send_email'),
    path('letters/<int:letter_id>/pdf/', views.letter_pdf, name='letter_pdf'),

    # Review
    path('admin/letters/', views.admin_letter_queue, name='admin_letter_queue'),
    path('letters/<int:letter_id>/start-review/', views.letter_start_review, name='letter_start_review'),
    path('letters/<int:letter_id>/edit/', views.letter_edit, name='letter_edit'),
    path('letters/<int:letter_id>/approve/', views.letter_approve, name='letter_approve'),
    path('letters/<int:letter_id>/reject/', views.letter_reject, name='letter_reject'),
    path('letters/<int:letter_id>/complete/', views.letter_complete, name='letter_complete'),
]
