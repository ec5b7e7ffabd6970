# routes/www.py
"""
Public website pages
"""

from flask import Blueprint, render_template, request, redirect, url_for, flash, g, current_app
import logging

from services.mail import Mail, MailError

www_bp = Blueprint('www', __name__)
logger = logging.getLogger(__name__)


@www_bp.route('/')
def index():
    return render_template('index.html')


@www_bp.route('/about')
def about():
    return render_template('about.html')


@www_bp.route('/contact', methods=['GET', 'POST'])
def contact():
    if request.method == 'POST':
        name = g.form.get('name')
        email = g.form.get('email')
        message = g.form.get('message')
        if not (name and email and message):
            flash('Please supply your name, e-mail and a message', 'error')
            return render_template('contact.html', form=g.form), 400

        text = f"Message from {name} <{email}>:\n\n{message}\n"
        try:
            Mail.send_text(current_app.config['MAIL_FROM'], f'Contact from {name}', text)
        except MailError as e:
            logger.error(f"Contact message from {email} not sent: {e}")
            flash('Sorry, your message could not be sent; please try again later', 'error')
            return render_template('contact.html', form=g.form), 500

        flash(f'Thank you for your message, {name}', 'success')
        return redirect(url_for('www.contact'))

    return render_template('contact.html', form={})
